import sys
import psutil
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import LaunchError

log = logging.getLogger(__name__)


#* --- Process Status & Monitoring ---
def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)

def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(proc: psutil.Process) -> str:
    """Gets a string representation of a process status."""
    try:
        if proc.status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"

def is_alive(proc: psutil.Process) -> bool:
    """
    Reports whether the process is still running. A zombie counts as exited.

    :raises psutil.Error: For anything other than the process being gone (e.g. AccessDenied).
    """
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False

def read_pid_file(pid_file: Union[str, Path]) -> int:
    """
    Reads a decimal process id from a pid file.

    :raises OSError: If the file cannot be read.
    :raises ValueError: If the content is not a positive integer.
    """
    content = Path(pid_file).read_text().strip()
    pid = int(content, 10)
    if pid <= 0:
        raise ValueError(f"Invalid pid {pid} in '{pid_file}'")
    return pid


#* --- Process Creation ---
def _get_popen_kwargs() -> Dict[str, Any]:
    """Returns platform-specific keyword arguments for subprocess."""
    if sys.platform != "win32":
        # Keep the daemon out of the console's process group so Ctrl+C is ours to forward
        return {"start_new_session": True}
    return {}

def get_fpm_args(executable: str, config_file: Union[str, Path]) -> List[str]:
    """Returns the command-line arguments to start php-fpm with the given config."""
    return [str(executable), "--fpm-config", str(config_file), "-e"]

def log_process_output(output: str, name: str, level: int = logging.INFO) -> None:
    """Logs every non-empty line of a process's captured output on the 'proc.<name>' logger."""
    proc_logger = logging.getLogger(f"proc.{name}")
    for line in output.splitlines():
        line = line.strip()
        if line:
            proc_logger.log(level, line)

def launch_fpm(executable: str, config_file: Union[str, Path], name: str) -> str:
    """
    Runs the php-fpm launcher and waits for it to return.

    php-fpm daemonizes: the launcher exits once the master has forked, so only
    a nonzero exit status is a failure. Combined stdout/stderr is captured.

    :return: The captured output.
    :raises LaunchError: If the executable cannot be spawned or exits unsuccessfully.
    """
    args = get_fpm_args(executable, config_file)
    log.info(f"Starting process: {' '.join(args)}")
    try:
        result = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            **_get_popen_kwargs(),
        )
    except OSError as e:
        raise LaunchError(f"Failed to start '{executable}': {e}") from e

    output = result.stdout.decode("utf-8", errors="replace")
    if result.returncode != 0:
        log_process_output(output, name, logging.ERROR)
        raise LaunchError(
            f"Unsuccessful exit of '{executable}' with status {result.returncode}",
            returncode=result.returncode,
            output=output,
        )

    log_process_output(output, name)
    return output
