import logging
from typing import TYPE_CHECKING

from .errors import StopError, WaitTimeoutError

if TYPE_CHECKING:
    from .supervisor import FpmProcess

log = logging.getLogger(__name__)


def _forceful_kill(fpm: "FpmProcess") -> None:
    """Forcefully kills a php-fpm master that didn't terminate gracefully."""
    from .supervisor import ProcessState

    log.warning(f"php-fpm (PID {fpm.pid}) did not terminate gracefully. Forcing shutdown...")
    try:
        fpm.kill()
    except StopError:
        if fpm.state != ProcessState.EXITED:
            raise
        log.info(f"php-fpm (PID {fpm.pid}) exited before it could be killed.")


def graceful_shutdown_sequence(fpm: "FpmProcess", timeout: float) -> bool:
    """
    Runs the full shutdown sequence: SIGINT, wait up to `timeout`, then SIGKILL.

    :param fpm: The supervised php-fpm process.
    :param timeout: Seconds to wait after SIGINT before force-killing.
    :return: True if php-fpm exited gracefully, False if it had to be killed.
    """
    from .supervisor import ProcessState

    if fpm.state == ProcessState.EXITED:
        log.info("php-fpm is not running. Nothing to stop.")
        return True

    try:
        fpm.stop()
    except StopError:
        if fpm.state != ProcessState.EXITED:
            raise
        log.info(f"php-fpm (PID {fpm.pid}) was already gone.")
        return True

    try:
        fpm.wait(timeout)
        return True
    except WaitTimeoutError:
        pass

    _forceful_kill(fpm)
    fpm.wait(timeout)
    return False
