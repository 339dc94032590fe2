"""In-process timing metrics for image requests.

Aggregates request durations per operation type so the health endpoint can
report how thumbnails and full images are performing. Counters live in
memory only and reset with the process.
"""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class TimingStats:
    """Aggregated durations of one operation type, in milliseconds."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def average_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count

    def add(self, duration_ms: float, failed: bool = False) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        if failed:
            self.error_count += 1

    def to_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "average_ms": round(self.average_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.count else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


class PerformanceMonitor:
    """Thread-safe timing aggregation keyed by operation type."""

    def __init__(self) -> None:
        self._stats: dict[str, TimingStats] = {}
        self._lock = threading.Lock()

    def record(self, operation_type: str, duration_ms: float, failed: bool = False) -> None:
        """Record one completed operation."""
        with self._lock:
            self._stats.setdefault(operation_type, TimingStats()).add(duration_ms, failed)

    @contextmanager
    def timer(self, operation_type: str) -> Iterator[None]:
        """Time the enclosed block; exceptions are counted as errors and re-raised."""
        start = time.perf_counter()
        failed = False
        try:
            yield
        except Exception:
            failed = True
            raise
        finally:
            self.record(operation_type, (time.perf_counter() - start) * 1000, failed)

    def summary(self) -> dict[str, dict[str, float | int]]:
        """Snapshot of all operation types."""
        with self._lock:
            return {name: stats.to_dict() for name, stats in self._stats.items()}

    def log_summary(self) -> None:
        logger.info("performance_summary", **self.summary())

    def clear(self) -> None:
        with self._lock:
            self._stats.clear()


_performance_monitor: PerformanceMonitor | None = None


def get_performance_monitor() -> PerformanceMonitor:
    """Get the global performance monitor instance."""
    global _performance_monitor
    if _performance_monitor is None:
        _performance_monitor = PerformanceMonitor()
    return _performance_monitor
