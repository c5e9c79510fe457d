import logging
from pathlib import Path
from typing import Optional, Union

from . import process_utils

log = logging.getLogger(__name__)


def get_pid_info(pid_file: Union[str, Path]) -> Optional[int]:
    """
    Reads the pid file written by php-fpm and returns the pid if that process is alive.

    :param pid_file: Path of the pid file.
    :return: The pid, or None if the file is missing, invalid, or stale.
    """
    try:
        pid = process_utils.read_pid_file(pid_file)
    except (OSError, ValueError) as e:
        log.debug(f"No usable pid in '{pid_file}': {e}")
        return None
    if not process_utils.pid_exists(pid):
        log.debug(f"Pid file '{pid_file}' names pid {pid}, which is not running.")
        return None
    return pid


def cleanup_runtime_files(pid_file: Optional[Union[str, Path]], socket_path: Optional[Union[str, Path]] = None) -> None:
    """Removes a leftover pid file and unix socket."""
    for path in (pid_file, socket_path):
        if path:
            Path(path).unlink(missing_ok=True)
    log.debug("Cleaned up pid and socket files.")
