import time
import signal
import psutil
import logging
import threading
import configparser
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

import fpmctl.settings as default_settings
from . import address, config_utils, persistence, process_utils, shutdown
from .address import Address
from .errors import (
    LaunchError, PidFileError, PidFileTimeoutError, ReadyTimeoutError,
    StopError, SupervisorStateError, WaitError, WaitTimeoutError,
)
from .polling import PollTimeout, poll_until

if TYPE_CHECKING:
    from fpmctl.local.config import MergedSettings

log = logging.getLogger(__name__)


class ProcessState(Enum):
    """Lifecycle state of the supervised php-fpm master."""
    UNSTARTED = "unstarted"
    LAUNCHING = "launching"            # Launcher running, waiting for it to return
    AWAITING_PID = "awaiting_pid"      # Waiting for php-fpm to write its pid file
    AWAITING_READY = "awaiting_ready"  # Waiting for the listen address to accept connections
    READY = "ready"
    STOPPING = "stopping"              # SIGINT sent, exit not yet observed
    EXITED = "exited"
    FAILED = "failed"
    TIMED_OUT = "timed_out"            # Never became reachable; the handle is still held


_STARTABLE = {ProcessState.UNSTARTED, ProcessState.EXITED, ProcessState.FAILED}
_LIVE = {
    ProcessState.LAUNCHING, ProcessState.AWAITING_PID, ProcessState.AWAITING_READY,
    ProcessState.READY, ProcessState.STOPPING,
}
_SIGNALABLE = {ProcessState.READY, ProcessState.TIMED_OUT}
_WAITABLE = {ProcessState.READY, ProcessState.STOPPING, ProcessState.TIMED_OUT}

# seconds allowed for one readiness connect attempt
PROBE_TIMEOUT = 1.0
MIN_PROBE_TIMEOUT = 0.001


class FpmProcess:
    """
    Describes a minimalistic php-fpm setup running a single pool, and
    supervises the php-fpm master started from it.

    php-fpm daemonizes on its own schedule: the launcher returns before the
    master is usable. Readiness is therefore detected in two steps, first the
    pid file, then a connection to the listen address.

    Only one php-fpm master is held per instance. Concurrent `start` calls on
    the same instance are rejected.
    """

    def __init__(self, executable: str, name: str = "phpfpm", worker: int = 10) -> None:
        # basename for pid / sock / log filename
        self.name = name
        self.executable = executable
        self.config_file: Optional[str] = None
        # username of the FastCGI process
        self.user = ""
        self.worker = worker
        # 'ip.add.re.ss:port', 'port' or '/path/to/unix/socket'
        self.listen = ""
        self.pid_file: Optional[str] = None
        self.error_log: Optional[str] = None

        self.poll_interval: float = default_settings.POLL_INTERVAL
        self.ready_timeout: float = default_settings.READY_TIMEOUT
        self.pid_file_timeout: Optional[float] = default_settings.PID_FILE_TIMEOUT

        self.state = ProcessState.UNSTARTED
        self.process: Optional[psutil.Process] = None
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    @classmethod
    def from_settings(cls, settings: "MergedSettings") -> "FpmProcess":
        """Builds a descriptor from the effective settings."""
        fpm = cls(settings.FPM_EXECUTABLE)
        fpm.set_name(settings.FPM_NAME)
        fpm.set_datadir(settings.DATA_DIR)
        if settings.FPM_LISTEN:
            fpm.set_listen(settings.FPM_LISTEN)
        fpm.set_worker(settings.FPM_WORKERS)
        fpm.set_user(settings.FPM_USER)
        fpm.config_file = str(settings.CONFIG_FILE_PATH)
        fpm.poll_interval = settings.POLL_INTERVAL
        fpm.ready_timeout = settings.READY_TIMEOUT
        fpm.pid_file_timeout = settings.PID_FILE_TIMEOUT
        return fpm

    def __repr__(self) -> str:
        return f"<FpmProcess name={self.name!r} state={self.state.value} pid={self.pid}>"

    #* --- Descriptor ---
    @property
    def pid(self) -> Optional[int]:
        """The pid of the held php-fpm master, if any."""
        return self.process.pid if self.process is not None else None

    def _ensure_not_live(self) -> None:
        if self.state in _LIVE:
            raise SupervisorStateError(f"Cannot change the descriptor while php-fpm is {self.state.value}")

    def _set_state(self, state: ProcessState) -> None:
        log.debug(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state

    def set_name(self, name: str) -> None:
        """Sets the base name for pid, error_log and sock file."""
        self._ensure_not_live()
        self.name = name

    def set_datadir(self, prefix: Union[str, Path]) -> None:
        """
        Sets the pid file, error log and listen socket under the folder prefix:
        '<prefix>/<name>.pid', '<prefix>/<name>.error_log', '<prefix>/<name>.sock'.
        """
        self._ensure_not_live()
        paths = config_utils.default_paths(prefix, self.name)
        self.pid_file = paths.pid_file
        self.error_log = paths.error_log
        self.listen = paths.listen

    def set_worker(self, worker: int) -> None:
        """Sets the number of php-fpm workers."""
        self._ensure_not_live()
        if isinstance(worker, bool) or not isinstance(worker, int) or worker < 1:
            raise ValueError(f"Worker count must be a positive integer, got {worker!r}")
        self.worker = worker

    def set_user(self, user: Optional[str]) -> None:
        """Sets the user the workers run as. Empty means php-fpm's default."""
        self._ensure_not_live()
        self.user = user or ""

    def set_listen(self, listen: str) -> None:
        self._ensure_not_live()
        self.listen = listen

    def address(self) -> Address:
        """Returns the network and address that fit both dialing and listening."""
        return address.resolve_address(self.listen)

    def config(self) -> configparser.ConfigParser:
        """Generates the minimalistic php-fpm config document."""
        return config_utils.build_config(
            pid_file=self.pid_file or "",
            error_log=self.error_log or "",
            listen=self.listen,
            workers=self.worker,
            user=self.user,
        )

    def save_config(self, path: Union[str, Path]) -> Path:
        """Generates the config and saves it to `path`, which becomes the config file."""
        self._ensure_not_live()
        self.config_file = str(path)
        return config_utils.save_config(self.config(), path)

    #* --- Lifecycle ---
    def start(self) -> None:
        """
        Launches php-fpm and blocks until its listen address is connectable.

        :raises LaunchError: If the launcher fails or php-fpm already runs from this pid file.
        :raises PidFileTimeoutError: If no pid file appears within `pid_file_timeout`.
        :raises PidFileError: If the pid file names a process that does not exist.
        :raises ReadyTimeoutError: If the address is not reachable within `ready_timeout`.
        """
        with self._lock:
            if self.state not in _STARTABLE:
                raise SupervisorStateError(f"Cannot start php-fpm in state {self.state.value}")
            missing = [attr for attr in ("executable", "config_file", "listen", "pid_file") if not getattr(self, attr)]
            if missing:
                raise SupervisorStateError(f"Cannot start php-fpm, missing: {', '.join(missing)}")
            self._cancel.clear()
            self.process = None
            self._set_state(ProcessState.LAUNCHING)

        try:
            self._check_if_already_running()
            process_utils.launch_fpm(self.executable, self.config_file, self.name)
        except Exception:
            self._set_state(ProcessState.FAILED)
            raise

        self._set_state(ProcessState.AWAITING_PID)
        try:
            pid = self._wait_pid()
            self.process = process_utils.get_process_from_pid(pid)
        except PollTimeout as e:
            self._set_state(ProcessState.FAILED)
            raise PidFileTimeoutError(
                f"php-fpm did not write '{self.pid_file}' within {self.pid_file_timeout}s"
            ) from e
        except psutil.Error as e:
            self._set_state(ProcessState.FAILED)
            raise PidFileError(f"php-fpm master from '{self.pid_file}' is not running: {e}") from e
        except Exception:
            self._set_state(ProcessState.FAILED)
            raise
        log.info(f"php-fpm master running with PID: {self.process.pid}")

        self._set_state(ProcessState.AWAITING_READY)
        addr = self.address()
        try:
            self._wait_conn(addr)
        except PollTimeout as e:
            self._set_state(ProcessState.TIMED_OUT)
            raise ReadyTimeoutError(
                f"php-fpm (PID: {self.pid}) not reachable on {addr.network} '{addr.address}' "
                f"after {self.ready_timeout} seconds"
            ) from e
        except Exception:
            # the master is held and may be running, keep it stoppable
            self._set_state(ProcessState.TIMED_OUT)
            raise

        self._set_state(ProcessState.READY)
        log.info(f"php-fpm is accepting connections on {addr.network} '{addr.address}'.")

    def _check_if_already_running(self) -> None:
        """Refuses to launch over a live pid file and clears a stale one."""
        pid = persistence.get_pid_info(self.pid_file)
        if pid is not None:
            raise LaunchError(f"php-fpm appears to be running already (PID: {pid} in '{self.pid_file}')")
        Path(self.pid_file).unlink(missing_ok=True)

    def _wait_pid(self) -> int:
        """Polls until the pid file holds a process id."""
        return poll_until(
            lambda: process_utils.read_pid_file(self.pid_file),
            self.poll_interval,
            self.pid_file_timeout,
            self._cancel,
            retry_on=(OSError, ValueError),
        )

    def _wait_conn(self, addr: Address) -> None:
        """
        Polls until a connection to the address succeeds. The probe connection is closed.
        A single connect attempt never outlives the deadline.
        """
        deadline = time.monotonic() + self.ready_timeout

        def _probe() -> bool:
            remaining = deadline - time.monotonic()
            return address.probe(addr, timeout=max(min(PROBE_TIMEOUT, remaining), MIN_PROBE_TIMEOUT))

        poll_until(
            _probe,
            self.poll_interval,
            self.ready_timeout,
            self._cancel,
            retry_on=(OSError,),
        )

    def attach(self) -> int:
        """
        Takes a handle on a php-fpm master started earlier, using the pid file.

        :return: The pid of the master.
        :raises PidFileError: If the pid file is missing, invalid or stale.
        """
        with self._lock:
            if self.state in _LIVE:
                raise SupervisorStateError(f"Cannot attach while php-fpm is {self.state.value}")
            if not self.pid_file:
                raise SupervisorStateError("Cannot attach, missing: pid_file")

            pid = persistence.get_pid_info(self.pid_file)
            if pid is None:
                raise PidFileError(f"No running php-fpm found from '{self.pid_file}'")
            try:
                self.process = process_utils.get_process_from_pid(pid)
            except psutil.NoSuchProcess as e:
                raise PidFileError(f"php-fpm (PID: {pid}) exited while attaching") from e
            self._cancel.clear()
            self._set_state(ProcessState.READY)
        return pid

    def _signal(self, sig: int) -> None:
        with self._lock:
            if self.state not in _SIGNALABLE and not (sig == signal.SIGKILL and self.state == ProcessState.STOPPING):
                raise SupervisorStateError(f"Cannot signal php-fpm in state {self.state.value}")
            try:
                self.process.send_signal(sig)
            except psutil.NoSuchProcess as e:
                self._set_state(ProcessState.EXITED)
                raise StopError(f"php-fpm (PID: {e.pid}) is no longer running") from e
            except psutil.Error as e:
                raise StopError(f"Failed to send signal {sig} to php-fpm (PID: {self.pid}): {e}") from e
            self._set_state(ProcessState.STOPPING)

    def stop(self) -> None:
        """
        Stops php-fpm with SIGINT instead of killing. Does not wait for the exit.

        :raises StopError: If the signal cannot be delivered.
        """
        self._signal(signal.SIGINT)
        log.info(f"Sent SIGINT to php-fpm (PID {self.pid}).")

    def kill(self) -> None:
        """Forcefully kills the php-fpm master with SIGKILL."""
        self._signal(signal.SIGKILL)
        log.warning(f"Killed php-fpm (PID {self.pid}).")

    def wait(self, timeout: Optional[float] = None) -> None:
        """
        Waits for the php-fpm master to finish. Returns at once if it already has.

        :param timeout: Seconds to wait, or None to wait as long as it takes.
        :raises WaitTimeoutError: If the process is still running after `timeout`.
        :raises WaitError: If the process state cannot be queried.
        """
        if self.state == ProcessState.EXITED:
            return
        if self.state not in _WAITABLE or self.process is None:
            raise SupervisorStateError(f"Cannot wait for php-fpm in state {self.state.value}")

        try:
            poll_until(
                lambda: not process_utils.is_alive(self.process),
                self.poll_interval,
                timeout,
                self._cancel,
            )
        except PollTimeout as e:
            raise WaitTimeoutError(f"php-fpm (PID: {self.pid}) still running after {timeout} seconds") from e
        except psutil.Error as e:
            raise WaitError(f"Failed to query php-fpm (PID: {self.pid}): {e}") from e

        self._set_state(ProcessState.EXITED)
        log.info(f"php-fpm (PID {self.pid}) has exited.")

    def shutdown(self, timeout: float = default_settings.GRACEFUL_SHUTDOWN_TIMEOUT) -> bool:
        """
        Stops php-fpm gracefully, killing it if it outlives `timeout`.

        :return: True if php-fpm exited on SIGINT, False if it had to be killed.
        """
        return shutdown.graceful_shutdown_sequence(self, timeout)

    def cancel(self) -> None:
        """Interrupts a start() or wait() blocked in another thread."""
        self._cancel.set()

    def cleanup_files(self) -> None:
        """Removes the pid file and, for a unix listen address, the socket file."""
        addr = self.address() if self.listen else None
        socket_path = addr.address if addr is not None and addr.network == address.UNIX else None
        persistence.cleanup_runtime_files(self.pid_file, socket_path)
