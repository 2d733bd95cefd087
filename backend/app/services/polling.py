"""
Retry-with-deadline loop for vendor jobs that finish asynchronously.

``poll_until`` calls ``fetch`` until ``is_terminal`` accepts the result or the
deadline passes. Errors raised by ``fetch`` are logged and retried; the only
failure the caller sees is ``PollTimeoutError``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollTimeoutError(Exception):
    """The deadline passed before the polled resource reached a terminal state."""

    def __init__(self, attempts: int, elapsed: float, last_result: Any = None):
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_result = last_result
        super().__init__(f"polling timed out after {attempts} attempts ({elapsed:.1f}s)")


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    *,
    interval: float,
    deadline: float,
    transient: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    started = clock()
    attempts = 0
    last_result: T | None = None

    while True:
        attempts += 1
        try:
            result = await fetch()
        except transient as exc:
            logger.warning("[poll] attempt %d failed: %s", attempts, exc)
        else:
            if is_terminal(result):
                return result
            last_result = result

        elapsed = clock() - started
        if elapsed >= deadline:
            raise PollTimeoutError(attempts, elapsed, last_result)
        await sleep(min(interval, deadline - elapsed))
