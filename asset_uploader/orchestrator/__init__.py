"""Orchestrator package - coordinates share upload batches."""
from .batch import BatchUploader
from .core import ShareUploadOrchestrator, collect_assets
from .models import BatchContext, BatchOutcome, ShareResult

__all__ = [
    "ShareUploadOrchestrator",
    "BatchUploader",
    "BatchContext",
    "BatchOutcome",
    "ShareResult",
    "collect_assets",
]
