"""Byte-level and asset-level progress merged into one reportable figure."""
from typing import Optional

from ..models import ProgressState
from ..utils.formatting import format_bytes


class ProgressAggregator:
    """
    Mutable progress of one batch.

    Counters only grow and are clamped to their totals, so a retried chunk
    or a late completion can never push them past 100%.
    """

    def __init__(self, total_bytes: int = 0, total_assets: int = 0):
        self.total_bytes = max(total_bytes, 0)
        self.total_assets = max(total_assets, 0)
        self.uploaded_bytes = 0
        self.completed_assets = 0

    def add_bytes(self, count: int) -> None:
        if count <= 0:
            return
        self.uploaded_bytes = min(self.total_bytes, self.uploaded_bytes + count)

    def complete_asset(self) -> None:
        self.completed_assets = min(self.total_assets, self.completed_assets + 1)

    def percent(self) -> Optional[float]:
        """Percentage, or None when there is nothing to measure."""
        if self.total_bytes > 0:
            pct = self.uploaded_bytes / self.total_bytes * 100
            if self.total_assets > 0 and self.completed_assets < self.total_assets:
                # 100% is reserved for a fully settled batch
                pct = min(pct, 99.0)
            return pct
        if self.total_assets > 0:
            return self.completed_assets / self.total_assets * 100
        return None

    def detail(self) -> str:
        sizes = f"{format_bytes(self.uploaded_bytes)} of {format_bytes(self.total_bytes)}"
        if self.total_assets > 0:
            return f"{self.completed_assets}/{self.total_assets} assets, {sizes}"
        return sizes

    def snapshot(self) -> ProgressState:
        return ProgressState(
            total_bytes=self.total_bytes,
            uploaded_bytes=self.uploaded_bytes,
            total_assets=self.total_assets,
            completed_assets=self.completed_assets,
        )
