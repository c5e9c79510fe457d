"""Exceptions raised while building, launching and supervising php-fpm."""

from typing import Optional


class FpmError(Exception):
    """Base class for all php-fpm supervision errors."""
    pass


class ConfigBuildError(FpmError):
    """Raised when the php-fpm config document cannot be built or saved."""
    pass


class LaunchError(FpmError):
    """Raised when the php-fpm launcher cannot be spawned or exits unsuccessfully."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output

    def __str__(self) -> str:
        message = super().__str__()
        if self.output:
            return f"{message}\noutput:\n{self.output}"
        return message


class PidFileError(FpmError):
    """Raised when the pid file cannot be read or names a process that is gone."""
    pass


class PidFileTimeoutError(FpmError):
    """Raised when php-fpm does not write its pid file before the deadline."""
    pass


class ReadyTimeoutError(FpmError):
    """Raised when the listen address is not connectable before the deadline."""
    pass


class StopError(FpmError):
    """Raised when a signal cannot be delivered to the php-fpm master."""
    pass


class WaitError(FpmError):
    """Raised when the liveness of the php-fpm master cannot be determined."""
    pass


class WaitTimeoutError(FpmError):
    """Raised when php-fpm is still running after a bounded wait."""
    pass


class SupervisorStateError(FpmError, RuntimeError):
    """Raised when an operation is not valid in the supervisor's current state."""
    pass
