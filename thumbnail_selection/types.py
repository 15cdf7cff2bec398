"""
Type definitions and data structures for thumbnail selection.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

# Decoded frame: (H, W) gray, (H, W, 3) RGB or (H, W, 4) RGBA, uint8
FrameBuffer = NDArray[np.uint8]


@dataclass(frozen=True)
class FrameStatistics:
    """Objective quality metrics of one frame; all floats lie in [0, 1]."""

    brightness: float
    contrast: float
    sharpness: float
    color_variance: float
    is_black_frame: bool
    is_white_frame: bool
    is_blurry: bool


@dataclass(frozen=True)
class ScoreComponents:
    """Per-factor scores before weighting."""

    sharpness: float
    brightness: float
    color_variance: float


@dataclass(frozen=True)
class FrameScore:
    """Weighted quality score and usability verdict for one frame."""

    score: float
    statistics: FrameStatistics
    components: ScoreComponents
    is_usable: bool
    issues: Tuple[str, ...] = ()
    timestamp: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class FrameAnalysis:
    """Statistics engine result for one frame."""

    statistics: FrameStatistics
    width: int
    height: int
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int = 0
    max_size: int = 0


@dataclass(frozen=True)
class PerformanceMetric:
    """Timing of one named sub-operation (perf_counter seconds)."""

    operation: str
    start_time: float
    end_time: float
    duration: float


@dataclass(frozen=True)
class PerformanceSummary:
    count: int = 0
    total_duration: float = 0.0
    average_duration: float = 0.0
    min_duration: float = 0.0
    max_duration: float = 0.0


@dataclass(frozen=True)
class FrameComparison:
    """Result of comparing two frames; ``winner`` is "a", "b" or "tie"."""

    winner: str
    score_difference: float
    scores: Tuple[FrameScore, FrameScore]


@dataclass(frozen=True)
class SamplingPlan:
    """Candidate timestamps computed once per selection call."""

    timestamps: Tuple[float, ...]
    interval: float
    candidate_count: int
    start_time: float
    end_time: float

    def __len__(self) -> int:
        return len(self.timestamps)


class FrameHandle:
    """
    Open handle to a candidate frame.

    Keeps the decoded buffer alive between scoring and final encoding so the
    frame never has to be fetched twice. ``release`` drops the buffer.
    """

    __slots__ = ("_buffer", "timestamp", "index")

    def __init__(self, buffer: FrameBuffer, timestamp: float, index: int):
        self._buffer: Optional[FrameBuffer] = buffer
        self.timestamp = timestamp
        self.index = index

    @property
    def buffer(self) -> FrameBuffer:
        if self._buffer is None:
            raise RuntimeError(f"Frame handle at {self.timestamp:.2f}s was already released")
        return self._buffer

    @property
    def is_released(self) -> bool:
        return self._buffer is None

    def release(self) -> None:
        self._buffer = None

    def __repr__(self) -> str:
        state = "released" if self.is_released else "open"
        return f"FrameHandle(index={self.index}, timestamp={self.timestamp:.3f}, {state})"


@dataclass
class ScoredCandidate:
    """A frame score paired with the still-open handle to its frame."""

    score: FrameScore
    handle: FrameHandle

    @property
    def timestamp(self) -> float:
        if self.score.timestamp is not None:
            return self.score.timestamp
        return 0.0


@dataclass(frozen=True)
class EncodedImage:
    """Encoded image bytes with their MIME type."""

    data: bytes
    mime_type: str
    width: int
    height: int

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class SelectedThumbnail:
    """Final output unit of a selection call."""

    image: EncodedImage
    timestamp: float
    score: float
    width: int
    height: int
