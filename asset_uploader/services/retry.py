"""Exponential backoff with jitter, aware of batch cancellation."""
import asyncio
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import PermanentRequestError, UploadCancelled
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.2

RetryObserver = Callable[[int, float, BaseException], Any]


class RetryPolicy:
    """
    Retries a failing async operation.

    UploadCancelled and PermanentRequestError are re-raised at once; any
    other error is retried up to `retries` times with delay
    min(max_delay, base_delay * 2^(attempt-1)) plus up to 20% jitter.
    """

    NON_RETRYABLE = (UploadCancelled, PermanentRequestError)

    def __init__(
        self,
        retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        rng: Optional[random.Random] = None,
    ):
        self.retries = retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._rng = rng or random.Random()

    def backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based), jitter included."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return delay + delay * JITTER_RATIO * self._rng.random()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        token: Optional[CancellationToken] = None,
        on_retry: Optional[RetryObserver] = None,
    ) -> T:
        attempt = 0
        while True:
            if token is not None:
                token.raise_if_aborted()
            try:
                return await operation()
            except self.NON_RETRYABLE:
                raise
            except Exception as exc:
                if attempt >= self.retries:
                    raise
                attempt += 1
                delay = self.backoff(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.retries + 1} failed ({exc}); retrying in {delay:.2f}s"
                )
                if on_retry is not None:
                    notified = on_retry(attempt, delay, exc)
                    if inspect.isawaitable(notified):
                        await notified
                if token is not None:
                    await token.sleep(delay)
                else:
                    await asyncio.sleep(delay)
