"""Utility functions for thumbnail selection."""

from .io import (
    setup_logging,
    load_config,
    save_config,
    ensure_dir,
)
from .progress import ProgressReporter
from .timing import PerformanceTracker, Timer, format_timings

__all__ = [
    "setup_logging",
    "load_config",
    "save_config",
    "ensure_dir",
    "ProgressReporter",
    "PerformanceTracker",
    "Timer",
    "format_timings",
]
