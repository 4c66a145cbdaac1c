"""Deadline-bounded polling primitive."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

from waymark.exceptions import WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll_until(
    predicate: Callable[[], Awaitable[T]],
    *,
    timeout_ms: float,
    interval_ms: float,
    description: str = "condition",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call *predicate* every *interval_ms* until it returns a truthy value.

    The predicate is always evaluated at least once. An exception raised by
    the predicate counts as "not yet" and polling continues.

    Args:
        predicate: Async callable returning the value to test.
        timeout_ms: Overall budget in milliseconds.
        interval_ms: Pause between evaluations in milliseconds.
        description: Used in the timeout error message.
        sleep: Awaitable sleep function (seconds); injectable for tests.
        clock: Monotonic clock (seconds); injectable for tests.

    Returns:
        The first truthy predicate result.

    Raises:
        WaitTimeoutError: If the deadline passes without a truthy result.
    """
    deadline = clock() + timeout_ms / 1000
    while True:
        try:
            result = await predicate()
        except Exception as exc:
            logger.debug("Polling %s raised, treating as not ready: %s", description, exc)
        else:
            if result:
                return result

        remaining = deadline - clock()
        if remaining <= 0:
            raise WaitTimeoutError(description, timeout_ms)
        await sleep(min(interval_ms / 1000, remaining))
