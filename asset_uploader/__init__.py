"""
asset_uploader - Adaptive chunked upload of document assets to a share site.

Follows SOLID principles:
- Single Responsibility: Each service handles one concern
- Dependency Injection: API client and progress reporter injected into orchestrator

Usage:
    from asset_uploader import ShareUploadOrchestrator, Asset, UploadConfig

    assets = [Asset.from_file(path, doc_id=doc_id) for path in paths]
    async with ShareUploadOrchestrator(site_url, api_key) as uploader:
        result = await uploader.share_doc(doc_id, {"title": "Notes"}, assets)

    # Cancel from elsewhere (dialog button, signal handler...)
    token = CancellationToken()
    task = asyncio.create_task(uploader.share_doc(doc_id, meta, assets, token=token))
    token.abort("user cancelled")
"""
from .errors import (
    AssetFailure,
    PermanentRequestError,
    TransientNetworkError,
    UploadCancelled,
    UploadError,
)
from .models import Asset, BatchState, ServerLimits, UploadBatch, UploadConfig
from .orchestrator import BatchOutcome, BatchUploader, ShareResult, ShareUploadOrchestrator
from .services import ShareAPIClient
from .utils import CancellationToken

__version__ = "0.3.0"
__all__ = [
    # Main
    "ShareUploadOrchestrator",
    "BatchUploader",
    "BatchOutcome",
    "ShareResult",
    # Models
    "Asset",
    "BatchState",
    "ServerLimits",
    "UploadBatch",
    "UploadConfig",
    # Services
    "ShareAPIClient",
    "CancellationToken",
    # Errors
    "UploadError",
    "UploadCancelled",
    "TransientNetworkError",
    "PermanentRequestError",
    "AssetFailure",
]
