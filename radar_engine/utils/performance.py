"""Performance monitoring and process memory utilities."""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional

import psutil

from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024


def process_memory_mb(process: Optional[psutil.Process] = None) -> float:
    """Resident set size of the given (default: current) process in MB."""
    process = process or psutil.Process()
    return process.memory_info().rss / BYTES_PER_MB


def process_private_memory_mb(process: Optional[psutil.Process] = None) -> float:
    """Unique set size (memory freed if the process exited) in MB.

    Falls back to RSS where the platform does not expose USS.
    """
    process = process or psutil.Process()
    try:
        return process.memory_full_info().uss / BYTES_PER_MB
    except (psutil.AccessDenied, AttributeError):
        return process_memory_mb(process)


def children_memory_mb(process: Optional[psutil.Process] = None) -> float:
    """Summed RSS of all descendant processes in MB.

    The browser runs as a tree of child processes (browser, GPU, renderers),
    so this is the closest cheap measure of its footprint. Children that exit
    while being inspected are skipped.
    """
    process = process or psutil.Process()
    total = 0
    for child in process.children(recursive=True):
        try:
            total += child.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return total / BYTES_PER_MB



@dataclass
class PerformanceMetrics:
    """Container for performance measurements."""

    operation: str
    duration_seconds: float
    memory_mb: float
    items_processed: int = 0


class PerformanceMonitor:
    """Record duration and memory deltas of named operations."""

    def __init__(self):
        self.metrics: Dict[str, List[PerformanceMetrics]] = {}
        self._enabled = False

    def enable(self) -> None:
        """Enable performance monitoring."""
        self._enabled = True
        logger.info("Performance monitoring enabled")

    def disable(self) -> None:
        """Disable performance monitoring."""
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @contextmanager
    def measure(self, operation: str):
        """Context manager for measuring operation performance.

        The yielded metrics entry is filled in on exit; set
        ``items_processed`` inside the block once the count is known.

        Example:
            >>> monitor = get_performance_monitor()
            >>> with monitor.measure("scrape OLX") as entry:
            ...     result = await engine.scrape(monitor)
            ...     entry.items_processed = len(result.ads)
        """
        entry = PerformanceMetrics(operation=operation, duration_seconds=0.0, memory_mb=0.0)
        if not self._enabled:
            yield entry
            return

        start_time = time.time()
        start_memory = process_memory_mb()

        try:
            yield entry
        finally:
            entry.duration_seconds = time.time() - start_time
            entry.memory_mb = process_memory_mb() - start_memory
            self.metrics.setdefault(operation, []).append(entry)

            logger.debug(
                f"Performance [{operation}]: duration={entry.duration_seconds:.3f}s, "
                f"memory={entry.memory_mb:+.1f}MB, items={entry.items_processed}"
            )

    def get_summary(self, operation: Optional[str] = None) -> Dict:
        """Summary statistics for one operation, or all of them.

        Returns:
            Dictionary with summary statistics (empty when nothing was measured)
        """
        if operation:
            metrics = self.metrics.get(operation, [])
        else:
            metrics = [m for ms in self.metrics.values() for m in ms]

        if not metrics:
            return {}

        total_duration = sum(m.duration_seconds for m in metrics)
        return {
            'count': len(metrics),
            'total_duration': total_duration,
            'avg_duration': total_duration / len(metrics),
            'min_duration': min(m.duration_seconds for m in metrics),
            'max_duration': max(m.duration_seconds for m in metrics),
            'avg_memory_mb': sum(m.memory_mb for m in metrics) / len(metrics),
            'total_items': sum(m.items_processed for m in metrics),
        }

    def clear(self) -> None:
        """Clear all recorded metrics."""
        self.metrics.clear()


# Global monitor instance
_monitor = PerformanceMonitor()


def get_performance_monitor() -> PerformanceMonitor:
    """Get global performance monitor instance."""
    return _monitor
