"""
Deadline-bounded polling on top of tenacity.

All condition waits in the core (element resolution, wait-for assertions)
go through poll_until() so they share one retry shape: fixed interval,
never sleeping past the deadline, and cancellable because tenacity sleeps
with asyncio.sleep.
"""

from typing import Any, Callable

from tenacity import AsyncRetrying, RetryCallState, stop_after_delay
from tenacity.wait import wait_base


class wait_poll_interval(wait_base):
    """Fixed poll interval clamped to the time left before the deadline."""

    def __init__(self, interval: float, deadline: float):
        self.interval = interval
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> float:
        elapsed = retry_state.seconds_since_start or 0.0
        remaining = self.deadline - elapsed
        return max(0.0, min(self.interval, remaining))


def poll_until(
    timeout_ms: int,
    interval_ms: int,
    retry: Callable[[RetryCallState], bool] | Any,
) -> AsyncRetrying:
    """
    Build an AsyncRetrying that polls until ``retry`` stops matching or
    ``timeout_ms`` elapses.

    A timeout of 0 gives exactly one attempt. The final attempt runs at the
    deadline, never after it.
    """
    timeout = max(timeout_ms, 0) / 1000
    return AsyncRetrying(
        stop=stop_after_delay(timeout),
        wait=wait_poll_interval(interval_ms / 1000, timeout),
        retry=retry,
        reraise=True,
    )
