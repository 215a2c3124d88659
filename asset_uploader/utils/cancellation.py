"""Write-once abort flag shared by every task of one batch."""
import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..errors import UploadCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cooperative cancellation for one batch.

    Once aborted it never resets. Tasks check it before each new unit of
    work; in-flight requests run through guard() so they are interrupted
    as soon as the token flips.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def abort(self, reason: Optional[str] = None) -> None:
        """Set the flag. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason or "Upload cancelled"
        logger.info(f"Cancellation requested: {self._reason}")
        self._event.set()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise UploadCancelled(self._reason)

    async def sleep(self, delay: float) -> bool:
        """Sleep up to `delay` seconds. Returns True if woken by abort."""
        if delay <= 0:
            return self.aborted
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable`, cancelling it if the token aborts first.

        Raises UploadCancelled when interrupted.
        """
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise UploadCancelled(self._reason)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise UploadCancelled(self._reason)
