"""
Bounded-Concurrency Fetch Scheduler
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10


async def map_with_concurrency_limit(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run `worker` over `items` with at most `limit` calls in flight.

    A waiting item starts as soon as a running one finishes. Results are
    returned in input order whatever the completion order. If a worker
    raises, the remaining calls are cancelled and the exception propagates;
    callers that want per-item isolation handle errors inside the worker.

    Args:
        items: Inputs to process
        limit: Maximum concurrent worker calls, 1 to 10
        worker: Async callable applied to each item

    Returns:
        One result per item, in the order of `items`
    """
    if not MIN_CONCURRENCY <= limit <= MAX_CONCURRENCY:
        raise ValueError(f"limit must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.ensure_future(run(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
