"""Batch upload state machine: assets in parallel, chunks in parallel per asset."""
import logging
import time
from functools import partial
from typing import Callable, Optional

from ..errors import AssetFailure, UploadCancelled
from ..models import Asset, BatchState, ChunkTask
from ..protocols import IProgressReporter, IShareAPIClient
from ..services.chunk_uploader import ChunkUploader
from ..services.limiter import run_all
from ..services.planner import AssetConcurrencyPlanner, ChunkPlanner, plan_chunks
from ..services.retry import RetryPolicy
from ..utils.events import EventEmitter
from .models import BatchContext, BatchOutcome

logger = logging.getLogger(__name__)

UPLOADING_LABEL = "Uploading content"


class BatchUploader:
    """
    Uploads every asset of one batch.

    States: PLANNING -> IN_FLIGHT -> COMPLETING -> FINALIZED | ABORTED | FAILED.

    Assets go largest first so the heavy transfers start immediately and
    small ones fill the free slots. Within an asset, the last chunk is only
    sent after all its siblings succeeded; the server treats it as the
    commit signal for the asset.

    Events (subscribe with on()):
        asset_start(asset), asset_complete(asset),
        chunk_retry(asset, index, attempt, delay, error), state(BatchState)

    The progress reporter is updated but never closed here; whoever opened
    it closes it.
    """

    def __init__(
        self,
        client: IShareAPIClient,
        context: BatchContext,
        reporter: Optional[IProgressReporter] = None,
    ):
        self._client = client
        self._ctx = context
        self._reporter = reporter
        self._events = EventEmitter()
        self._state = BatchState.PLANNING
        self._chunk_planner = ChunkPlanner(context.speed)
        self._asset_planner = AssetConcurrencyPlanner(context.speed)
        self._retry = RetryPolicy(
            retries=context.config.chunk_retries,
            base_delay=context.config.retry_base_delay,
            max_delay=context.config.retry_max_delay,
        )
        self._chunks = ChunkUploader(
            client,
            self._retry,
            context.speed,
            context.progress,
            context.token,
            on_chunk_done=self._on_chunk_done,
        )

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def context(self) -> BatchContext:
        return self._ctx

    def on(self, event_name: str, callback: Callable) -> None:
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        self._events.off(event_name, callback)

    async def _set_state(self, state: BatchState) -> None:
        self._state = state
        logger.debug(f"Batch {self._ctx.batch.upload_id}: {state.value}")
        await self._events.emit("state", state)

    def _report(self, text: Optional[str] = None) -> None:
        if self._reporter is None:
            return
        progress = self._ctx.progress
        self._reporter.update(text=text, percent=progress.percent(), detail=progress.detail())

    def _label(self) -> str:
        progress = self._ctx.progress
        if progress.total_assets > 1:
            return f"{UPLOADING_LABEL} ({progress.completed_assets}/{progress.total_assets})"
        return UPLOADING_LABEL

    def _on_chunk_done(self, chunk: ChunkTask) -> None:
        self._report(self._label())

    async def run(self) -> BatchOutcome:
        """Upload all assets. Never raises for upload errors; see the outcome."""
        ctx = self._ctx
        started = time.monotonic()

        assets = sorted(ctx.batch.assets, key=lambda a: a.size_bytes, reverse=True)
        concurrency = self._asset_planner.concurrency(
            ctx.batch.total_bytes,
            len(assets),
            ctx.config.max_asset_concurrency,
            [a.size_bytes for a in assets],
        )
        logger.info(
            f"Uploading {len(assets)} assets ({ctx.batch.total_bytes} bytes) "
            f"with asset concurrency {concurrency}"
        )

        await self._set_state(BatchState.IN_FLIGHT)
        self._report(self._label())

        error: Optional[BaseException] = None
        try:
            await run_all(
                [partial(self._upload_asset, asset) for asset in assets],
                concurrency,
                ctx.token,
            )
            ctx.token.raise_if_aborted()
        except Exception as exc:
            error = exc
            ctx.token.abort(str(exc) or type(exc).__name__)

        await self._set_state(BatchState.COMPLETING)
        if error is None:
            final_state = BatchState.FINALIZED
            self._report(UPLOADING_LABEL)
        elif isinstance(error, UploadCancelled):
            final_state = BatchState.ABORTED
            logger.info(f"Batch {ctx.batch.upload_id} aborted: {error}")
        else:
            final_state = BatchState.FAILED
            logger.error(f"Batch {ctx.batch.upload_id} failed: {error}")
        await self._set_state(final_state)

        return BatchOutcome(
            state=final_state,
            progress=ctx.progress.snapshot(),
            elapsed=time.monotonic() - started,
            error=error,
        )

    async def _upload_asset(self, asset: Asset) -> None:
        ctx = self._ctx
        ctx.token.raise_if_aborted()
        await self._events.emit("asset_start", asset)

        chunk_size = self._chunk_planner.chunk_size(
            asset.size_bytes,
            ctx.limits.min_chunk_size,
            ctx.limits.max_chunk_size,
        )
        chunks = plan_chunks(asset, chunk_size)
        total = len(chunks)
        concurrency = self._chunk_planner.chunk_concurrency(
            asset.size_bytes, chunk_size, ctx.config.max_chunk_concurrency
        )
        logger.debug(
            f"{asset.path}: {asset.size_bytes} bytes in {total} chunks of {chunk_size}, "
            f"chunk concurrency {concurrency}"
        )

        try:
            if total > 1:
                await run_all(
                    [partial(self._upload_chunk, chunk, total) for chunk in chunks[:-1]],
                    concurrency,
                    ctx.token,
                )
                # the final chunk must never start unless every sibling landed
                ctx.token.raise_if_aborted()
            await self._upload_chunk(chunks[-1], total)
        except UploadCancelled:
            raise
        except Exception as exc:
            raise AssetFailure(asset.path, exc) from exc

        ctx.progress.complete_asset()
        logger.info(f"Uploaded {asset.path} ({asset.size_bytes} bytes)")
        self._report(self._label())
        await self._events.emit("asset_complete", asset)

    async def _upload_chunk(self, chunk: ChunkTask, total_chunks: int) -> None:
        async def on_retry(attempt: int, delay: float, error: BaseException) -> None:
            await self._events.emit("chunk_retry", chunk.asset, chunk.index, attempt, delay, error)

        await self._chunks.upload(
            self._ctx.batch.upload_id,
            chunk,
            total_chunks,
            on_retry=on_retry,
        )
