"""
Thumbnail Selection from Video Frames

Scores candidate frames on sharpness, brightness and color variance, rejects
black, overexposed and blurry frames, and picks a high-quality subset that is
spread across the video timeline.

Example usage:
    ```python
    from thumbnail_selection import ThumbnailOptions, ThumbnailSize
    from thumbnail_selection.selector import generate_thumbnails

    thumbnails = generate_thumbnails(
        "video.mp4",
        ThumbnailOptions(count=5, format="jpeg", size=ThumbnailSize(width=640)),
    )

    for thumb in thumbnails:
        print(f"{thumb.timestamp:.2f}s score={thumb.score:.2f}")
    ```

For command-line usage:
    ```bash
    python run_selection.py --video video.mp4 --count 5 --output ./output
    ```
"""

__version__ = "0.1.0"

from .config import (
    PipelineConfig,
    QualityThresholds,
    ScorerConfig,
    ScoringWeights,
    SelectionConfig,
    StatisticsConfig,
    ThumbnailOptions,
    ThumbnailSize,
)
from .errors import (
    CollaboratorTimeoutError,
    ErrorCode,
    InvalidInputError,
    ProcessingError,
    RenderError,
    ThumbnailError,
    VideoNotReadyError,
)
from .frame_statistics import StatisticsEngine
from .scorer import FrameScorer
from .selector import ThumbnailSelector, apply_diversity_filter
from .types import (
    EncodedImage,
    FrameAnalysis,
    FrameScore,
    FrameStatistics,
    SamplingPlan,
    ScoreComponents,
    SelectedThumbnail,
)

__all__ = [
    # Version
    "__version__",
    # Config classes
    "PipelineConfig",
    "QualityThresholds",
    "ScorerConfig",
    "ScoringWeights",
    "SelectionConfig",
    "StatisticsConfig",
    "ThumbnailOptions",
    "ThumbnailSize",
    # Errors
    "CollaboratorTimeoutError",
    "ErrorCode",
    "InvalidInputError",
    "ProcessingError",
    "RenderError",
    "ThumbnailError",
    "VideoNotReadyError",
    # Engine
    "StatisticsEngine",
    "FrameScorer",
    "ThumbnailSelector",
    "apply_diversity_filter",
    # Data types
    "EncodedImage",
    "FrameAnalysis",
    "FrameScore",
    "FrameStatistics",
    "SamplingPlan",
    "ScoreComponents",
    "SelectedThumbnail",
]
