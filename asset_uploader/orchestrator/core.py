"""Core orchestrator - share upload session against one site."""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import PermanentRequestError
from ..models import Asset, ServerLimits, UploadBatch, UploadConfig
from ..protocols import IProgressReporter, IShareAPIClient
from ..services.api_client import ShareAPIClient
from ..services.speed import SpeedEstimator
from ..utils.cancellation import CancellationToken
from .batch import UPLOADING_LABEL, BatchUploader
from .models import BatchContext, ShareResult

logger = logging.getLogger(__name__)


def collect_assets(assets: Iterable[Asset]) -> List[Asset]:
    """
    Validate assets and drop duplicate paths (first occurrence wins).

    Raises PermanentRequestError for entries the server can never accept.
    """
    seen = set()
    collected = []
    for asset in assets:
        if not asset.path:
            raise PermanentRequestError("Asset path is empty")
        if asset.size_bytes < 0:
            raise PermanentRequestError(f"Asset {asset.path} has negative size {asset.size_bytes}")
        if asset.path in seen:
            logger.debug(f"Skipping duplicate asset {asset.path}")
            continue
        seen.add(asset.path)
        collected.append(asset)
    return collected


class ShareUploadOrchestrator:
    """
    Orchestrates share uploads using an injected API client.

    Owns the session-wide SpeedEstimator so throughput learned by one batch
    seeds the next, and the server chunk limits learned from verify().

    Usage:
        async with ShareUploadOrchestrator(site_url, api_key) as uploader:
            result = await uploader.share_doc(doc_id, {"title": "Notes"}, assets, progress)
    """

    def __init__(
        self,
        site_url: str = "",
        api_key: str = "",
        config: Optional[UploadConfig] = None,
        client: Optional[IShareAPIClient] = None,
    ):
        """
        Args:
            site_url: Share site base URL
            api_key: Site API key
            config: Upload configuration
            client: Pre-built API client (skips building ShareAPIClient)
        """
        self._site_url = site_url
        self._api_key = api_key
        self._config = config or UploadConfig()
        self._external_client = client
        self._client: Optional[IShareAPIClient] = client
        self._owned_client: Optional[ShareAPIClient] = None
        self._speed = SpeedEstimator()
        self._limits: Optional[ServerLimits] = None
        self._user: Optional[Dict[str, Any]] = None
        self._listeners: List[Tuple[str, Callable]] = []

    async def __aenter__(self):
        if self._external_client is None:
            self._owned_client = ShareAPIClient(
                self._site_url,
                self._api_key,
                timeout=self._config.request_timeout,
            )
            await self._owned_client.__aenter__()
            self._client = self._owned_client
        return self

    async def __aexit__(self, *args):
        if self._owned_client:
            await self._owned_client.__aexit__(*args)
            self._owned_client = None

    @property
    def speed(self) -> SpeedEstimator:
        return self._speed

    @property
    def limits(self) -> Optional[ServerLimits]:
        return self._limits

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to batch events for every future batch of this session."""
        self._listeners.append((event_name, callback))

    async def verify(self) -> ServerLimits:
        """Handshake with the site and learn its chunk size limits."""
        assert self._client is not None, "use 'async with'"
        data = await self._client.verify()
        self._user = data.get("user")
        self._limits = ServerLimits.from_payload(data.get("limits"))
        logger.info(
            f"Verified site; chunk limits {self._limits.min_chunk_size}-{self._limits.max_chunk_size} bytes"
        )
        return self._limits

    async def share_doc(
        self,
        doc_id: str,
        metadata: Dict[str, Any],
        assets: Iterable[Asset],
        progress: Optional[IProgressReporter] = None,
        token: Optional[CancellationToken] = None,
    ) -> ShareResult:
        """Share one document with its assets."""
        payload = dict(metadata)
        payload["docId"] = doc_id
        return await self._share(payload, assets, False, progress, token)

    async def share_notebook(
        self,
        notebook_id: str,
        metadata: Dict[str, Any],
        assets: Iterable[Asset],
        progress: Optional[IProgressReporter] = None,
        token: Optional[CancellationToken] = None,
    ) -> ShareResult:
        """Share a whole notebook; assets carry their owning doc_id."""
        payload = dict(metadata)
        payload["notebookId"] = notebook_id
        return await self._share(payload, assets, True, progress, token)

    async def _share(
        self,
        metadata: Dict[str, Any],
        assets: Iterable[Asset],
        notebook: bool,
        progress: Optional[IProgressReporter],
        token: Optional[CancellationToken],
    ) -> ShareResult:
        assert self._client is not None, "use 'async with'"
        token = token or CancellationToken()
        started = time.monotonic()
        upload_id = ""
        completed = False

        def report(text: str) -> None:
            if progress is not None:
                progress.update(text=text)

        try:
            if self._limits is None:
                report("Verifying site")
                await token.guard(self.verify())

            collected = collect_assets(assets)
            manifest = [asset.manifest_entry() for asset in collected]

            report(UPLOADING_LABEL)
            upload_id = await token.guard(self._client.init_upload(metadata, manifest, notebook))
            batch = UploadBatch(upload_id=upload_id, assets=collected)
            logger.info(f"Opened upload {upload_id}: {len(collected)} assets, {batch.total_bytes} bytes")

            context = BatchContext(
                batch=batch,
                config=self._config,
                limits=self._limits,
                speed=self._speed,
                token=token,
            )
            uploader = BatchUploader(self._client, context, progress)
            for event_name, callback in self._listeners:
                uploader.on(event_name, callback)

            outcome = await uploader.run()
            if outcome.error is not None:
                raise outcome.error

            token.raise_if_aborted()
            await self._client.complete_upload(upload_id)
            completed = True
            if progress is not None:
                progress.update(text=UPLOADING_LABEL, percent=100.0, detail=context.progress.detail())

            elapsed = time.monotonic() - started
            logger.info(f"Upload {upload_id} committed in {elapsed:.1f}s")
            return ShareResult(
                upload_id=upload_id,
                total_assets=len(collected),
                total_bytes=batch.total_bytes,
                elapsed=elapsed,
                state=outcome.state,
            )
        except BaseException:
            # includes task cancellation by the caller
            if upload_id and not completed:
                await self._cancel_quietly(upload_id)
            raise
        finally:
            if progress is not None:
                progress.close()

    async def _cancel_quietly(self, upload_id: str) -> None:
        """Best effort server cleanup; failures are logged only."""
        try:
            await self._client.cancel_upload(upload_id)
            logger.info(f"Cancelled upload {upload_id}")
        except Exception as e:
            logger.warning(f"Cancel upload {upload_id} failed: {e}")
