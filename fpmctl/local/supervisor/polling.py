"""
A single poll-until loop shared by the pid file, reachability and liveness waits.
"""

import time
import logging
import threading
from typing import Callable, Optional, Tuple, Type, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class PollTimeout(Exception):
    """Raised when a poll does not succeed before its deadline."""

    def __init__(self, timeout: float, attempts: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(f"Condition not met within {timeout}s after {attempts} attempts")
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error


class PollCancelled(Exception):
    """Raised when a poll is cancelled through its cancel event."""
    pass


def poll_until(
    predicate: Callable[[], T],
    interval: float,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    retry_on: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Calls `predicate` until it returns a truthy value and returns that value.

    :param predicate: Zero-argument callable checked on every attempt.
    :param interval: Seconds to sleep between attempts.
    :param timeout: Overall deadline in seconds, or None to poll forever.
    :param cancel: Optional event; once set, the poll stops with PollCancelled.
    :param retry_on: Exception types raised by `predicate` that count as "not yet".
    :raises PollTimeout: If the deadline passes first.
    :raises PollCancelled: If `cancel` is set first.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    attempts = 0
    last_error: Optional[BaseException] = None

    while True:
        if cancel is not None and cancel.is_set():
            raise PollCancelled(f"Poll cancelled after {attempts} attempts")

        attempts += 1
        try:
            result = predicate()
            if result:
                return result
        except retry_on as e:
            last_error = e

        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise PollTimeout(timeout, attempts, last_error)
            pause = min(interval, remaining)
        else:
            pause = interval

        # Event.wait doubles as an interruptible sleep
        if cancel is not None:
            cancel.wait(pause)
        else:
            time.sleep(pause)
