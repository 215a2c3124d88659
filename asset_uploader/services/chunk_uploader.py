"""Single chunk transfer, wired through retry, speed and progress tracking."""
import asyncio
import logging
import time
from typing import Callable, Optional

from ..models import ChunkTask
from ..protocols import IShareAPIClient
from ..utils.cancellation import CancellationToken
from .progress import ProgressAggregator
from .retry import RetryObserver, RetryPolicy
from .speed import SpeedEstimator

logger = logging.getLogger(__name__)


class ChunkUploader:
    """
    Uploads one ChunkTask.

    The request runs under the batch token so an abort interrupts it
    mid-flight. Only the successful attempt is timed and fed to the speed
    estimator.
    """

    def __init__(
        self,
        client: IShareAPIClient,
        retry: RetryPolicy,
        speed: SpeedEstimator,
        progress: ProgressAggregator,
        token: CancellationToken,
        on_chunk_done: Optional[Callable[[ChunkTask], None]] = None,
    ):
        self._client = client
        self._retry = retry
        self._speed = speed
        self._progress = progress
        self._token = token
        self._on_chunk_done = on_chunk_done

    async def upload(
        self,
        upload_id: str,
        chunk: ChunkTask,
        total_chunks: int,
        on_retry: Optional[RetryObserver] = None,
    ) -> None:
        asset = chunk.asset
        # FileSource.read blocks on disk
        data = await asyncio.to_thread(asset.content.read, chunk.start, chunk.end)
        elapsed_ms = 0.0

        async def attempt() -> None:
            nonlocal elapsed_ms
            started = time.monotonic()
            await self._token.guard(
                self._client.upload_chunk(
                    upload_id,
                    asset.path,
                    chunk.index,
                    total_chunks,
                    asset.size_bytes,
                    data,
                    asset_doc_id=asset.doc_id,
                )
            )
            elapsed_ms = (time.monotonic() - started) * 1000

        await self._retry.execute(attempt, token=self._token, on_retry=on_retry)

        self._speed.record(chunk.length, elapsed_ms)
        self._progress.add_bytes(chunk.length)
        logger.debug(
            f"Chunk {chunk.index + 1}/{total_chunks} of {asset.path} done "
            f"({chunk.length} bytes in {elapsed_ms:.0f} ms)"
        )
        if self._on_chunk_done is not None:
            self._on_chunk_done(chunk)
