"""Bounded-parallelism task runner used for assets and chunks alike."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..errors import UploadCancelled
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_all(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
    token: Optional[CancellationToken] = None,
) -> List[Optional[T]]:
    """
    Run task factories with at most `limit` in flight.

    Workers claim the next task from a shared cursor until the list is
    exhausted or the token aborts. The first error aborts the token so
    siblings stop claiming; it is re-raised once every worker has stopped.
    A cancellation recorded first gives way to a real error raised by a
    sibling, since that error is what caused the cancellation.
    Results are returned in task order (None for tasks never started).
    """
    results: List[Optional[T]] = [None] * len(tasks)
    if not tasks:
        return results

    cursor = 0
    first_error: Optional[BaseException] = None

    def stopped() -> bool:
        return first_error is not None or (token is not None and token.aborted)

    async def worker(worker_id: int) -> None:
        nonlocal cursor, first_error
        while not stopped() and cursor < len(tasks):
            index = cursor
            cursor += 1
            try:
                results[index] = await tasks[index]()
            except Exception as exc:
                if first_error is None or (
                    isinstance(first_error, UploadCancelled) and not isinstance(exc, UploadCancelled)
                ):
                    first_error = exc
                    logger.debug(f"Worker {worker_id} stopping on task {index}: {exc!r}")
                if token is not None:
                    token.abort(str(exc) or type(exc).__name__)
                return

    workers = max(1, min(limit, len(tasks)))
    await asyncio.gather(*(worker(i) for i in range(workers)))

    if first_error is not None:
        raise first_error
    return results
