"""Asynchronous helpers shared by the configuration and sync layers."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def get_optimal_concurrency(max_concurrency: int | None = None) -> int:
    """Determine a concurrency level based on system resources.

    Args:
        max_concurrency: Optional maximum concurrency to cap at

    Returns:
        Number of concurrent tasks to allow
    """
    cpu_count = os.cpu_count()
    optimal = min(32, (cpu_count + 4) if cpu_count else 8)

    if max_concurrency is not None and max_concurrency > 0:
        return min(optimal, max_concurrency)

    return optimal


async def gather_bounded(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    max_concurrency: int | None = None,
) -> list[R | BaseException]:
    """Run ``func`` over ``items`` concurrently with a semaphore.

    Results keep the order of ``items``. Exceptions are returned in place of
    results, except cancellation, which propagates to the caller.

    Args:
        items: Inputs to process
        func: Coroutine function applied to each input
        max_concurrency: Upper bound on in-flight calls

    Returns:
        One result or exception per input
    """
    semaphore = asyncio.Semaphore(get_optimal_concurrency(max_concurrency))

    async def _run(item: T) -> R:
        async with semaphore:
            return await func(item)

    results = await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
    return results
