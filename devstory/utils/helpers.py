import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


async def gather_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> List[R]:
    """
    Runs `worker` over `items` with at most `limit` calls in flight.

    Results come back in input order. The first failure cancels the remaining
    calls and is re-raised; no partial results are returned.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.ensure_future(run(item)) for item in items]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        # let cancelled tasks unwind before the error propagates
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def run_periodically(interval: float, job: Callable[[], object], name: str) -> None:
    """
    Calls `job` every `interval` seconds until cancelled.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            job()
        except Exception:
            logger.exception("Periodic job %s failed", name)
