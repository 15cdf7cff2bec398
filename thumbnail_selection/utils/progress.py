"""
Synchronous progress reporting with isolated callbacks.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class ProgressReporter:
    """
    Forward integer percentages to an optional callback.

    Calls happen synchronously on the caller's thread. Values that do not
    increase are dropped, so the callback observes a strictly increasing
    sequence. An exception raised by the callback is logged and never
    propagates into the pipeline.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last_reported: int = -1
        self.failures: int = 0

    def report(self, percent: float) -> None:
        value = int(max(0, min(100, percent)))
        if self.callback is None or value <= self.last_reported:
            return

        self.last_reported = value
        try:
            self.callback(value)
        except Exception:
            self.failures += 1
            logger.exception(f"Progress callback failed at {value}%")

    def phase(self, start: int, end: int) -> ProgressCallback:
        """
        Map a sub-task's own 0-100 progress into ``[start, end]``.

        Args:
            start: Overall percentage at which the phase begins.
            end: Overall percentage at which the phase ends.

        Returns:
            Callback accepting the sub-task's percentage.
        """
        span = end - start

        def _report(progress: float) -> None:
            self.report(start + int(max(0, min(100, progress)) * span / 100))

        return _report
