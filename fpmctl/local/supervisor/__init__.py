"""
The Supervisor package.
Manages the lifecycle of a single php-fpm master process.

This package contains the central FpmProcess class and its helper modules,
which together handle config generation, launching, readiness detection,
and graceful or forced shutdown.
"""
from .address import Address, resolve_address
from .config_utils import build_config, default_paths, save_config
from .errors import (
    FpmError, ConfigBuildError, LaunchError, PidFileError, PidFileTimeoutError,
    ReadyTimeoutError, StopError, WaitError, WaitTimeoutError, SupervisorStateError,
)
from .polling import poll_until, PollTimeout, PollCancelled
from .supervisor import FpmProcess, ProcessState

__all__ = [
    'FpmProcess', 'ProcessState',
    'Address', 'resolve_address',
    'build_config', 'default_paths', 'save_config',
    'poll_until', 'PollTimeout', 'PollCancelled',
    'FpmError', 'ConfigBuildError', 'LaunchError', 'PidFileError', 'PidFileTimeoutError',
    'ReadyTimeoutError', 'StopError', 'WaitError', 'WaitTimeoutError', 'SupervisorStateError',
]
