"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import Optional

from ..models import BatchState, ProgressState, ServerLimits, UploadBatch, UploadConfig
from ..services.progress import ProgressAggregator
from ..services.speed import SpeedEstimator
from ..utils.cancellation import CancellationToken


@dataclass
class BatchContext:
    """Everything one batch's tasks share, owned by the orchestrator."""
    batch: UploadBatch
    config: UploadConfig
    limits: ServerLimits
    speed: SpeedEstimator
    token: CancellationToken = field(default_factory=CancellationToken)
    progress: Optional[ProgressAggregator] = None

    def __post_init__(self):
        if self.progress is None:
            self.progress = ProgressAggregator(
                total_bytes=self.batch.total_bytes,
                total_assets=len(self.batch.assets),
            )


@dataclass(frozen=True)
class BatchOutcome:
    """How a batch settled. `error` is set unless state is FINALIZED."""
    state: BatchState
    progress: ProgressState
    elapsed: float
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.state == BatchState.FINALIZED


@dataclass(frozen=True)
class ShareResult:
    """Result of a committed share upload."""
    upload_id: str
    total_assets: int
    total_bytes: int
    elapsed: float
    state: BatchState = BatchState.FINALIZED
