"""
Chunk and concurrency heuristics.

Every decision reads the live throughput estimate, so plans made later in a
batch adapt to what earlier chunks measured.
"""
import logging
import math
import statistics
from typing import List, Optional, Sequence, Tuple

from ..models import Asset, ChunkTask, GiB, KiB, MiB
from .speed import SpeedEstimator

logger = logging.getLogger(__name__)

TARGET_CHUNK_MS = 1800

# (asset size threshold, suggested minimum chunk); None means "use max chunk"
CHUNK_FLOOR_TIERS: Tuple[Tuple[int, Optional[int]], ...] = (
    (1 * GiB, None),
    (256 * MiB, 6 * MiB),
    (64 * MiB, 4 * MiB),
    (16 * MiB, 2 * MiB),
)


def plan_chunks(asset: Asset, chunk_size: int) -> List[ChunkTask]:
    """
    Split an asset into contiguous ranges covering [0, size) exactly.

    An empty asset still gets one empty chunk so the server records it.
    """
    size = asset.size_bytes
    if size <= 0 or chunk_size <= 0:
        return [ChunkTask(asset=asset, index=0, start=0, end=max(size, 0))]
    total = math.ceil(size / chunk_size)
    return [
        ChunkTask(asset=asset, index=i, start=i * chunk_size, end=min(size, (i + 1) * chunk_size))
        for i in range(total)
    ]


class ChunkPlanner:
    """Picks chunk size and per-asset chunk concurrency."""

    def __init__(self, speed: SpeedEstimator):
        self._speed = speed

    def chunk_size(self, asset_size: int, min_chunk: int, max_chunk: int) -> int:
        if asset_size <= min_chunk:
            return max(asset_size, 0)

        target = round(self._speed.current() * TARGET_CHUNK_MS / 1000)
        floor_hint = self._floor_hint(asset_size, max_chunk)
        result = min(max(target, floor_hint, min_chunk), max_chunk)
        return min(result, asset_size)

    @staticmethod
    def _floor_hint(asset_size: int, max_chunk: int) -> int:
        """Bigger assets get bigger chunks, bounding the request count."""
        for threshold, floor in CHUNK_FLOOR_TIERS:
            if asset_size >= threshold:
                return max_chunk if floor is None else floor
        return 0

    def chunk_concurrency(self, asset_size: int, chunk_size: int, max_concurrency: int) -> int:
        if chunk_size <= 0:
            return 1
        total_chunks = max(1, math.ceil(asset_size / chunk_size))

        speed = self._speed.current()
        if speed >= 10 * MiB:
            tier = 4
        elif speed >= 6 * MiB:
            tier = 3
        elif speed >= 2.5 * MiB:
            tier = 2
        else:
            tier = 1

        if asset_size >= 512 * MiB:
            tier = max(tier, 4)
        elif asset_size >= 256 * MiB:
            tier = max(tier, 3)
        elif asset_size >= 128 * MiB:
            tier = max(tier, 2)

        if total_chunks <= 2:
            tier = 1
        elif total_chunks <= 4:
            tier = min(tier, 2)

        return max(1, min(max_concurrency, tier, total_chunks))


def _percentile(sorted_values: Sequence[int], pct: float) -> int:
    """Nearest-rank percentile of an ascending sequence."""
    rank = max(1, math.ceil(pct / 100 * len(sorted_values)))
    return sorted_values[min(rank, len(sorted_values)) - 1]


class AssetConcurrencyPlanner:
    """Decides how many assets of a batch upload at once."""

    def __init__(self, speed: SpeedEstimator):
        self._speed = speed

    def concurrency(
        self,
        total_bytes: int,
        total_assets: int,
        max_concurrency: int,
        size_sample: Optional[Sequence[int]] = None,
    ) -> int:
        if total_assets <= 0:
            return 1

        if total_assets >= 100:
            tier = 8
        elif total_assets >= 50:
            tier = 6
        elif total_assets >= 20:
            tier = 4
        elif total_assets >= 10:
            tier = 3
        elif total_assets >= 4:
            tier = 2
        else:
            tier = 1

        cap = None
        if size_sample:
            ordered = sorted(size_sample)
            median = statistics.median(ordered)
            p90 = _percentile(ordered, 90)
            largest = ordered[-1]

            # many small transfers pack well in parallel
            if median <= 128 * KiB:
                tier = max(tier, 8)
            elif median <= 512 * KiB:
                tier = max(tier, 6)
            elif median <= 2 * MiB:
                tier = max(tier, 4)

            if largest >= 128 * MiB:
                cap = 1
            elif largest >= 64 * MiB:
                cap = 2
            elif p90 >= 32 * MiB:
                cap = 3
        else:
            mean = total_bytes / total_assets
            if mean <= 256 * KiB:
                tier = max(tier, 6)
            elif mean <= 1 * MiB:
                tier = max(tier, 4)

            if mean >= 64 * MiB:
                cap = 1
            elif mean >= 16 * MiB:
                cap = 2

        speed = self._speed.current()
        if speed >= 12 * MiB:
            tier = max(tier, 6)
        elif speed >= 8 * MiB:
            tier = max(tier, 5)
        elif speed >= 4 * MiB:
            tier = max(tier, 4)
        elif speed >= 2 * MiB:
            tier = max(tier, 3)

        # size caps stay ceilings even on a fast link
        if cap is not None:
            tier = min(tier, cap)

        result = max(1, min(max_concurrency, tier, total_assets))
        logger.debug(
            f"Asset concurrency {result} for {total_assets} assets "
            f"({total_bytes} bytes, speed {speed:.0f} B/s)"
        )
        return result
