"""Smoothed throughput estimate fed by completed chunk transfers."""
import math

from ..models import MiB

DEFAULT_BYTES_PER_SECOND = 2 * MiB
SMOOTHING = 0.2


class SpeedEstimator:
    """
    Exponential moving average of upload throughput in bytes/second.

    Shared by every in-flight chunk of a session. Updates are plain
    synchronous read-modify-write, safe on a single event loop.
    """

    def __init__(self, default_bytes_per_second: float = DEFAULT_BYTES_PER_SECOND, alpha: float = SMOOTHING):
        self._default = default_bytes_per_second
        self._alpha = alpha
        self.avg_bytes_per_second = 0.0
        self.sample_count = 0

    def record(self, bytes_transferred: float, elapsed_ms: float) -> None:
        """Fold one completed transfer into the estimate."""
        if not _positive_finite(bytes_transferred) or not _positive_finite(elapsed_ms):
            return
        instant = bytes_transferred / elapsed_ms * 1000
        if self.avg_bytes_per_second == 0:
            self.avg_bytes_per_second = instant
        else:
            self.avg_bytes_per_second = (
                self.avg_bytes_per_second * (1 - self._alpha) + instant * self._alpha
            )
        self.sample_count += 1

    def current(self) -> float:
        """Estimate, or the cold-start default before any sample."""
        if self.avg_bytes_per_second > 0:
            return self.avg_bytes_per_second
        return self._default


def _positive_finite(value) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0
