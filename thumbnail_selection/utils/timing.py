"""
Timing and profiling utilities.
"""

import functools
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional

from ..types import PerformanceMetric, PerformanceSummary

logger = logging.getLogger(__name__)


class Timer:
    """
    Context manager and decorator for timing code execution.

    Usage as context manager:
        with Timer("my_operation") as t:
            do_something()
        print(f"Took {t.elapsed:.3f}s")

    Usage as decorator:
        @Timer.decorate("my_function")
        def my_function():
            ...
    """

    def __init__(self, name: str = "operation", log: bool = True):
        """
        Initialize timer.

        Args:
            name: Name of the operation being timed.
            log: Whether to log the timing result.
        """
        self.name = name
        self.log = log
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time

        if self.log:
            logger.info(f"[TIMER] {self.name}: {self.elapsed:.3f}s")

    @classmethod
    def decorate(cls, name: Optional[str] = None, log: bool = True) -> Callable:
        """
        Decorator factory for timing functions.

        Args:
            name: Custom name (defaults to function name).
            log: Whether to log the timing.

        Returns:
            Decorator function.
        """
        def decorator(func: Callable) -> Callable:
            timer_name = name or func.__name__

            @functools.wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                with cls(timer_name, log=log):
                    return func(*args, **kwargs)

            return wrapper
        return decorator


class PerformanceTracker:
    """
    Collects timings of named sub-operations for one owner.

    Disabled trackers still run the tracked block but record nothing.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._metrics: List[PerformanceMetric] = []

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return

        timer = Timer(operation, log=False)
        try:
            with timer:
                yield
        finally:
            self._metrics.append(PerformanceMetric(
                operation=operation,
                start_time=timer.start_time,
                end_time=timer.end_time,
                duration=timer.elapsed,
            ))
            logger.debug(f"{operation} took {timer.elapsed:.4f}s")

    @property
    def metrics(self) -> List[PerformanceMetric]:
        return list(self._metrics)

    def summary(self, operation: Optional[str] = None) -> PerformanceSummary:
        """
        Aggregate recorded durations.

        Args:
            operation: Restrict the summary to one operation name.

        Returns:
            PerformanceSummary (all zeros when nothing was recorded).
        """
        durations = [
            m.duration for m in self._metrics
            if operation is None or m.operation == operation
        ]
        if not durations:
            return PerformanceSummary()

        total = sum(durations)
        return PerformanceSummary(
            count=len(durations),
            total_duration=total,
            average_duration=total / len(durations),
            min_duration=min(durations),
            max_duration=max(durations),
        )

    def clear(self) -> None:
        self._metrics.clear()

    def __len__(self) -> int:
        return len(self._metrics)


def format_timings(timings: dict) -> str:
    """Get a summary of stage timings as printable text."""
    if not timings:
        return "No timings recorded."

    lines = ["Timing Summary:", "-" * 40]
    total = 0.0
    for name, elapsed in timings.items():
        lines.append(f"  {name}: {elapsed:.3f}s")
        total += elapsed
    lines.append("-" * 40)
    lines.append(f"  Total: {total:.3f}s")
    return "\n".join(lines)
