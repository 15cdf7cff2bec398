"""
Configuration dataclasses for statistics, scoring and thumbnail selection.

Defaults:
    Quality thresholds: black < 0.1, white > 0.9, blurry < 0.3
    Scoring weights: sharpness 0.4, brightness 0.3, color variance 0.3
    Usability: score >= 0.3 (strict) or >= 0.1 (normal)
    Selection: 3x candidates, 5% margins, 2s candidate / 5s thumbnail spacing
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from .errors import InvalidInputError

MIN_THUMBNAIL_COUNT = 1
MAX_THUMBNAIL_COUNT = 10
SUPPORTED_FORMATS = ("jpeg", "png")


@dataclass
class QualityThresholds:
    """Thresholds used to flag unusable frames."""

    # Mean luma below this marks a black frame (fade out, invalid frame)
    black_frame_threshold: float = 0.1

    # Mean luma above this marks a white frame (fade in, overexposure)
    white_frame_threshold: float = 0.9

    # Normalized sharpness below this marks a blurry frame
    blur_threshold: float = 0.3


@dataclass
class StatisticsConfig:
    """Configuration for the statistics engine."""

    # Memoize analysis results keyed by frame dimensions and content
    cache: bool = False
    max_cache_size: int = 100

    # Down-sampling factor in (0, 1] applied before analysis
    analysis_scale: float = 1.0

    # Record per-operation timings
    track_performance: bool = False

    # Caller guarantees frames are valid
    skip_validation: bool = False

    def __post_init__(self):
        if not 0.0 < self.analysis_scale <= 1.0:
            raise InvalidInputError(
                "analysis_scale must be in (0, 1]",
                {"analysis_scale": self.analysis_scale},
            )
        if self.max_cache_size < 1:
            raise InvalidInputError(
                "max_cache_size must be at least 1",
                {"max_cache_size": self.max_cache_size},
            )


@dataclass
class ScoringWeights:
    """Weights of the score components; expected to sum to 1.0."""

    sharpness: float = 0.4
    brightness: float = 0.3
    color_variance: float = 0.3

    def total(self) -> float:
        return self.sharpness + self.brightness + self.color_variance

    def is_normalized(self, tolerance: float = 0.01) -> bool:
        return abs(self.total() - 1.0) <= tolerance


@dataclass
class ScorerConfig:
    """Configuration for frame scoring."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)

    # Strict mode raises the usability threshold from 0.1 to 0.3
    strict_mode: bool = False

    thresholds: QualityThresholds = field(default_factory=QualityThresholds)

    # Scoring the same frames repeatedly is common, so cache by default
    statistics: StatisticsConfig = field(
        default_factory=lambda: StatisticsConfig(cache=True, max_cache_size=100)
    )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "ScorerConfig":
        config_dict = dict(config_dict)
        weights = ScoringWeights(**config_dict.pop("weights", {}))
        thresholds = QualityThresholds(**config_dict.pop("thresholds", {}))
        statistics = StatisticsConfig(
            **{"cache": True, **config_dict.pop("statistics", {})}
        )
        return cls(
            weights=weights,
            thresholds=thresholds,
            statistics=statistics,
            **config_dict,
        )


@dataclass(frozen=True)
class ThumbnailSize:
    """Requested output size; a single side preserves the aspect ratio."""

    width: Optional[int] = None
    height: Optional[int] = None

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInputError(
                    f"{name.capitalize()} must be an integer. Received: {value!r}",
                    {name: value},
                )
            if value <= 0:
                raise InvalidInputError(
                    f"{name.capitalize()} must be greater than 0. Received: {value}",
                    {name: value},
                )

    @property
    def is_empty(self) -> bool:
        return self.width is None and self.height is None


@dataclass(frozen=True)
class ThumbnailOptions:
    """
    Validated options for one ``generate`` call.

    Construction raises ``InvalidInputError`` for any out-of-range value, so
    an instance is always safe to hand to the pipeline.
    """

    count: int = 5
    quality: float = 0.8
    format: Literal["jpeg", "png"] = "jpeg"
    size: Optional[ThumbnailSize] = None

    def __post_init__(self):
        count = self.count
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            raise InvalidInputError(
                f"Thumbnail count must be an integer. Received: {count!r}",
                {"count": count},
            )
        if count < MIN_THUMBNAIL_COUNT or count > MAX_THUMBNAIL_COUNT:
            raise InvalidInputError(
                f"Thumbnail count must be between {MIN_THUMBNAIL_COUNT} and "
                f"{MAX_THUMBNAIL_COUNT}. Received: {count}",
                {"count": count, "valid_range": [MIN_THUMBNAIL_COUNT, MAX_THUMBNAIL_COUNT]},
            )
        if isinstance(count, float):
            if not count.is_integer():
                raise InvalidInputError(
                    f"Thumbnail count must be an integer. Received: {count}",
                    {"count": count},
                )
            object.__setattr__(self, "count", int(count))

        quality = self.quality
        if isinstance(quality, bool) or not isinstance(quality, (int, float)) or not 0.0 <= quality <= 1.0:
            raise InvalidInputError(
                f"Quality must be between 0 and 1. Received: {quality!r}",
                {"quality": quality, "valid_range": [0, 1]},
            )

        fmt = self.format.lower() if isinstance(self.format, str) else self.format
        if fmt not in SUPPORTED_FORMATS:
            raise InvalidInputError(
                f"Format must be 'jpeg' or 'png'. Received: {self.format!r}",
                {"format": self.format, "valid_formats": list(SUPPORTED_FORMATS)},
            )
        object.__setattr__(self, "format", fmt)

        if isinstance(self.size, dict):
            object.__setattr__(self, "size", ThumbnailSize(**self.size))
        if self.size is not None and self.size.is_empty:
            object.__setattr__(self, "size", None)

    @property
    def mime_type(self) -> str:
        return f"image/{self.format}"

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]]) -> "ThumbnailOptions":
        """Build options from a plain mapping, rejecting unknown keys."""
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise InvalidInputError(
                f"Unknown thumbnail options: {', '.join(unknown)}",
                {"unknown": unknown, "known": sorted(known)},
            )
        return cls(**options)


@dataclass
class SelectionConfig:
    """Sampling and diversity constants for thumbnail selection."""

    # Candidates requested per output thumbnail
    candidate_multiplier: int = 3

    # Fraction of the video skipped at each end (fade in / fade out)
    video_margin: float = 0.05

    # Minimum spacing between sampled candidates (seconds)
    min_candidate_spacing: float = 2.0

    # Cap on spacing between selected thumbnails (seconds)
    min_thumbnail_spacing: float = 5.0

    # Spacing as a fraction of duration when shorter than the cap
    thumbnail_spacing_ratio: float = 0.05

    # Videos shorter than this use a reduced candidate multiplier (seconds)
    short_video_threshold: float = 30.0

    min_usable_frames: int = 1

    # Warn when more than this fraction of candidates is rejected
    high_filter_rate: float = 0.5


@dataclass
class PipelineConfig:
    """Master configuration combining all stages."""

    # Video input
    video_path: Optional[Path] = None

    # Output settings
    output_dir: Path = field(default_factory=lambda: Path("output"))

    # Stage configurations
    options: ThumbnailOptions = field(default_factory=ThumbnailOptions)
    scorer: ScorerConfig = field(default_factory=ScorerConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)

    verbose: bool = True

    def __post_init__(self):
        """Convert paths to Path objects if needed."""
        if self.video_path is not None and not isinstance(self.video_path, Path):
            self.video_path = Path(self.video_path)
        if not isinstance(self.output_dir, Path):
            self.output_dir = Path(self.output_dir)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "PipelineConfig":
        """Create config from a dictionary (e.g., loaded from YAML/JSON)."""
        config_dict = dict(config_dict)
        options = ThumbnailOptions.from_dict(config_dict.pop("options", {}))
        scorer = ScorerConfig.from_dict(config_dict.pop("scorer", {}))
        selection = SelectionConfig(**config_dict.pop("selection", {}))

        return cls(
            options=options,
            scorer=scorer,
            selection=selection,
            **config_dict,
        )

    def to_dict(self) -> dict:
        """Serialize config to dictionary for logging/saving."""
        return asdict(self)
