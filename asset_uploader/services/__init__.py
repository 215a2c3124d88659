"""Services for asset_uploader module."""
from .api_client import ShareAPIClient
from .chunk_uploader import ChunkUploader
from .limiter import run_all
from .planner import AssetConcurrencyPlanner, ChunkPlanner, plan_chunks
from .progress import ProgressAggregator
from .retry import RetryPolicy
from .speed import SpeedEstimator

__all__ = [
    "ShareAPIClient",
    "ChunkUploader",
    "run_all",
    "AssetConcurrencyPlanner",
    "ChunkPlanner",
    "plan_chunks",
    "ProgressAggregator",
    "RetryPolicy",
    "SpeedEstimator",
]
