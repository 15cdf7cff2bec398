"""
Exception hierarchy for thumbnail selection.

Every error raised by the engine carries a machine-readable ``code`` and a
``details`` dictionary with the context needed to diagnose it (counts,
thresholds, offending timestamps).
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    VIDEO_NOT_READY = "VIDEO_NOT_READY"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RENDER_ERROR = "RENDER_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"


class ThumbnailError(Exception):
    """Base class for all thumbnail selection errors."""

    code: ErrorCode = ErrorCode.PROCESSING_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({context})"


class InvalidInputError(ThumbnailError, ValueError):
    """Bad option values, e.g. a thumbnail count outside [1, 10]."""

    code = ErrorCode.INVALID_INPUT


class VideoNotReadyError(ThumbnailError):
    """Video metadata, dimensions or duration are not usable."""

    code = ErrorCode.VIDEO_NOT_READY


class ProcessingError(ThumbnailError):
    """No usable frames were found, or a required single-candidate step failed."""

    code = ErrorCode.PROCESSING_ERROR


class RenderError(ThumbnailError):
    """Resizing or drawing a frame failed in the imaging backend."""

    code = ErrorCode.RENDER_ERROR


class CollaboratorTimeoutError(ThumbnailError, TimeoutError):
    """
    A frame source or encoder exceeded its time budget.

    Never raised by the engine itself; collaborators that impose timeouts
    raise it so callers can handle every failure through ``ThumbnailError``.
    """

    code = ErrorCode.TIMEOUT_ERROR
