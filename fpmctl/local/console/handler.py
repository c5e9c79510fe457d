import time
import psutil
import signal
import logging
import threading
import setproctitle
from typing import List, Optional
from fpmctl.local import effective_settings
from fpmctl.local.supervisor import FpmProcess, ProcessState, PidFileError, ReadyTimeoutError
from fpmctl.local.supervisor import process_utils
from fpmctl.local.supervisor.config_utils import render_config

log = logging.getLogger(__name__)

# LSB exit status for 'program is not running'
STATUS_NOT_RUNNING = 3


def build_process() -> FpmProcess:
    """Creates the php-fpm descriptor from the effective settings."""
    return FpmProcess.from_settings(effective_settings)


def _prepare(fpm: FpmProcess) -> None:
    """Creates the data directory and writes the php-fpm config file."""
    effective_settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    fpm.save_config(fpm.config_file)
    log.info(f"php-fpm config written to '{fpm.config_file}'.")


def _start_or_clean_up(fpm: FpmProcess) -> None:
    """Starts php-fpm. A master that never became reachable is shut down before the error is raised."""
    try:
        fpm.start()
    except ReadyTimeoutError:
        fpm.shutdown(effective_settings.GRACEFUL_SHUTDOWN_TIMEOUT)
        raise


def start_fpm() -> int:
    """Starts php-fpm in the background and returns once it accepts connections."""
    fpm = build_process()
    _prepare(fpm)
    start_time = time.time()
    _start_or_clean_up(fpm)
    log.info(f"php-fpm started successfully with PID {fpm.pid} in {time.time() - start_time:.2f} seconds.")
    return 0


def run_fpm(shutdown_signal_received: Optional[threading.Event] = None) -> int:
    """
    Starts php-fpm and stays in the foreground until SIGINT/SIGTERM or until
    php-fpm exits on its own, then shuts it down.

    :param shutdown_signal_received: Event that ends supervision when set.
        Signal handlers are only installed when running on the main thread.
    :return: 0 after a graceful shutdown, 1 if php-fpm exited on its own or had to be killed.
    """
    setproctitle.setproctitle(effective_settings.PROCESS_TITLE)
    fpm = build_process()
    _prepare(fpm)

    if shutdown_signal_received is None:
        shutdown_signal_received = threading.Event()

    def _on_signal(signum, _frame):
        log.info(f"Received signal {signal.Signals(signum).name}. Shutting down php-fpm...")
        shutdown_signal_received.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _on_signal)
        signal.signal(signal.SIGTERM, _on_signal)

    _start_or_clean_up(fpm)

    log.info(f"Supervising php-fpm (PID {fpm.pid}). Press Ctrl+C to stop.")
    while not shutdown_signal_received.wait(1):
        if not process_utils.is_alive(fpm.process):
            fpm.wait()
            log.error(f"php-fpm (PID {fpm.pid}) exited unexpectedly.")
            return 1

    graceful = fpm.shutdown(effective_settings.GRACEFUL_SHUTDOWN_TIMEOUT)
    return 0 if graceful else 1


def stop_fpm() -> int:
    """Stops a php-fpm master started by an earlier 'start'."""
    fpm = build_process()
    try:
        fpm.attach()
    except PidFileError as e:
        log.info(f"php-fpm is not running: {e}")
        return 0

    log.info(f"Stopping php-fpm (PID {fpm.pid})...")
    graceful = fpm.shutdown(effective_settings.GRACEFUL_SHUTDOWN_TIMEOUT)
    fpm.cleanup_files()
    log.info("php-fpm stopped." if graceful else "php-fpm had to be killed.")
    return 0


def display_status() -> int:
    """Displays whether php-fpm is running, with its pid, uptime and address."""
    fpm = build_process()
    addr = fpm.address()
    print("\n--- php-fpm Status ---")
    print(f"  Config:  {fpm.config_file}")
    print(f"  Listen:  {addr.network} {addr.address}")
    try:
        pid = fpm.attach()
    except PidFileError:
        print("  Status:  stopped")
        print("----------------------\n")
        return STATUS_NOT_RUNNING

    status = process_utils.get_proc_status_string(fpm.process)
    try:
        uptime = time.strftime('%H:%M:%S', time.gmtime(time.time() - fpm.process.create_time()))
        name = fpm.process.name()
    except psutil.Error:
        uptime, name = "N/A", "N/A"
    print(f"  Status:  {status}")
    print(f"  PID:     {pid} ({name})")
    print(f"  Uptime:  {uptime}")
    print("----------------------\n")
    return 0 if fpm.state == ProcessState.READY and status == "running" else STATUS_NOT_RUNNING


def handle_config_command(args: List[str]) -> int:
    """Handles 'config' (show the generated php-fpm config) and 'config set KEY VALUE'."""
    if not args or args[0] == "show":
        print(render_config(build_process().config()), end="")
        return 0

    if args[0] == "set" and len(args) == 3:
        key, value = args[1].upper(), args[2]
        try:
            effective_settings.update_setting(key, value)
        except (KeyError, ValueError, TypeError) as e:
            log.error(f"Config update failed: {e}")
            return 1
        return 0

    log.info("Usage: config [show] | config set <KEY> <VALUE>")
    log.info(f"Modifiable settings: {', '.join(sorted(effective_settings.MODIFIABLE_SETTINGS))}")
    return 1


def print_help() -> int:
    """Prints the list of commands."""
    print("\n--- fpmctl Commands ---")
    print("  start                  Write the config and start php-fpm in the background")
    print("  run                    Start php-fpm and supervise it in the foreground")
    print("  stop                   Stop php-fpm (SIGINT, then SIGKILL after the timeout)")
    print("  status                 Show whether php-fpm is running")
    print("  config [show]          Print the generated php-fpm config")
    print("  config set <KEY> <VAL> Change a setting: " + ", ".join(sorted(effective_settings.MODIFIABLE_SETTINGS)))
    print("  help                   Show this message")
    print("Add --verbose to any command for debug output.")
    print("-----------------------\n")
    return 0
