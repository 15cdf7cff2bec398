"""
Frame statistics engine.

Extracts brightness, contrast, sharpness and color variance from a decoded
frame, with an optional bounded result cache and optional timing telemetry.
"""

import hashlib
import logging
from collections import OrderedDict
from dataclasses import replace
from typing import List, Optional

import cv2
import numpy as np
from numpy.typing import NDArray

from .config import QualityThresholds, StatisticsConfig
from .types import (
    CacheStats,
    FrameAnalysis,
    FrameBuffer,
    FrameStatistics,
    PerformanceMetric,
    PerformanceSummary,
)
from .utils.timing import PerformanceTracker

logger = logging.getLogger(__name__)

# Laplacian variance (8-bit luma) at which sharpness saturates to 1.0.
# Flat frames score 0; fine detail and hard edges reach the cap.
SHARPNESS_CALIBRATION = 1000.0

# Largest possible standard deviation of an 8-bit channel
MAX_CHANNEL_STD = 127.5


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


class StatisticsEngine:
    """
    Deterministic extraction of ``FrameStatistics`` from frame buffers.

    Frames are ``uint8`` numpy arrays in gray, RGB or RGBA layout. The
    engine never keeps a reference to a frame; when caching is enabled only
    the derived statistics are stored.

    The cache is plain mutable state owned by the instance and is not safe
    for concurrent mutation; use one engine per worker.
    """

    def __init__(
        self,
        config: Optional[StatisticsConfig] = None,
        thresholds: Optional[QualityThresholds] = None,
    ):
        """
        Initialize statistics engine.

        Args:
            config: Cache, scale and instrumentation settings. Defaults if None.
            thresholds: Black/white/blur thresholds. Defaults if None.
        """
        self.config = config or StatisticsConfig()
        self.thresholds = thresholds or QualityThresholds()

        self._cache: "OrderedDict[str, FrameAnalysis]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._tracker = PerformanceTracker(enabled=self.config.track_performance)

    # ------------------------------------------------------------------
    # Validation and buffer extraction

    def validate(self, frame: Optional[FrameBuffer]) -> bool:
        """Return False for a missing frame or one with a zero dimension."""
        if self.config.skip_validation:
            return True
        if frame is None or not isinstance(frame, np.ndarray):
            return False
        if frame.ndim not in (2, 3):
            return False
        if frame.ndim == 3 and frame.shape[2] not in (1, 3, 4):
            return False
        height, width = frame.shape[:2]
        return width > 0 and height > 0

    def extract_buffer(
        self,
        frame: Optional[FrameBuffer],
        scale: Optional[float] = None,
    ) -> Optional[FrameBuffer]:
        """
        Down-sample a frame before analysis.

        Args:
            frame: Source frame.
            scale: Factor in (0, 1]; defaults to the configured analysis scale.

        Returns:
            The (possibly resized) buffer, or None when the frame is invalid.
        """
        if scale is None:
            scale = self.config.analysis_scale
        if not self.validate(frame) or not 0.0 < scale <= 1.0:
            return None

        with self._tracker.track("extract_buffer"):
            if scale >= 1.0:
                return frame

            height, width = frame.shape[:2]
            new_w = max(1, int(round(width * scale)))
            new_h = max(1, int(round(height * scale)))
            return cv2.resize(
                np.ascontiguousarray(frame),
                (new_w, new_h),
                interpolation=cv2.INTER_AREA,
            )

    # ------------------------------------------------------------------
    # Statistics

    def compute_statistics(self, buffer: FrameBuffer) -> FrameStatistics:
        """
        Compute all quality metrics of a buffer.

        Args:
            buffer: Gray, RGB or RGBA ``uint8`` frame.

        Returns:
            FrameStatistics with every metric normalized to [0, 1].
        """
        with self._tracker.track("compute_statistics"):
            color = self._color_channels(buffer)
            luma = self._luma(color)

            brightness = _clamp(float(luma.mean()) / 255.0)
            contrast = _clamp((float(luma.max()) - float(luma.min())) / 255.0)
            sharpness = self._sharpness(luma)
            color_variance = self._color_variance(color)

            return FrameStatistics(
                brightness=brightness,
                contrast=contrast,
                sharpness=sharpness,
                color_variance=color_variance,
                is_black_frame=brightness < self.thresholds.black_frame_threshold,
                is_white_frame=brightness > self.thresholds.white_frame_threshold,
                is_blurry=sharpness < self.thresholds.blur_threshold,
            )

    @staticmethod
    def _color_channels(buffer: FrameBuffer) -> NDArray[np.uint8]:
        """Drop alpha and squeeze single-channel frames to 2D."""
        buffer = np.asarray(buffer)
        if buffer.dtype != np.uint8:
            buffer = np.clip(buffer, 0, 255).astype(np.uint8)
        if buffer.ndim == 3:
            if buffer.shape[2] == 4:
                buffer = buffer[:, :, :3]
            elif buffer.shape[2] == 1:
                buffer = buffer[:, :, 0]
        return np.ascontiguousarray(buffer)

    @staticmethod
    def _luma(color: NDArray[np.uint8]) -> NDArray[np.float64]:
        # Rec. 601 weights: 0.299 R + 0.587 G + 0.114 B
        if color.ndim == 2:
            return color.astype(np.float64)
        return cv2.cvtColor(color, cv2.COLOR_RGB2GRAY).astype(np.float64)

    @staticmethod
    def _sharpness(luma: NDArray[np.float64]) -> float:
        if min(luma.shape) < 3:
            return 0.0
        laplacian = cv2.Laplacian(luma, cv2.CV_64F, ksize=1)
        return _clamp(float(laplacian.var()) / SHARPNESS_CALIBRATION)

    @staticmethod
    def _color_variance(color: NDArray[np.uint8]) -> float:
        if color.ndim == 2:
            spread = float(color.std())
        else:
            pixels = color.reshape(-1, color.shape[2]).astype(np.float64)
            spread = float(pixels.std(axis=0).mean())
        return _clamp(spread / MAX_CHANNEL_STD)

    # ------------------------------------------------------------------
    # Cached analysis

    def analyze(
        self,
        frame: FrameBuffer,
        timestamp: Optional[float] = None,
    ) -> FrameAnalysis:
        """
        Analyze a frame, consulting the cache when enabled.

        Args:
            frame: Source frame.
            timestamp: Optional position of the frame in the video (seconds).

        Returns:
            FrameAnalysis with statistics and source dimensions.

        Raises:
            ValueError: If the frame fails validation.
        """
        if not self.validate(frame):
            raise ValueError("Invalid frame: missing or zero-sized buffer")

        key = self.cache_key(frame) if self.config.cache else None
        if key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                self._hits += 1
                logger.debug(f"Cache hit for {key[:24]}")
                return replace(cached, timestamp=timestamp)
            self._misses += 1

        buffer = self.extract_buffer(frame)
        height, width = frame.shape[:2]
        result = FrameAnalysis(
            statistics=self.compute_statistics(buffer),
            width=int(width),
            height=int(height),
        )

        if key is not None:
            self._store(key, result)

        return replace(result, timestamp=timestamp)

    def cache_key(self, frame: FrameBuffer) -> str:
        """Structural identity of a frame: dimensions plus a content digest."""
        height, width = frame.shape[:2]
        channels = frame.shape[2] if frame.ndim == 3 else 1
        digest = hashlib.blake2b(
            np.ascontiguousarray(frame).tobytes(),
            digest_size=16,
        ).hexdigest()
        return f"{width}x{height}x{channels}:{frame.dtype.str}:{digest}"

    def _store(self, key: str, result: FrameAnalysis) -> None:
        # Oldest-inserted entries are evicted first
        while len(self._cache) >= self.config.max_cache_size:
            evicted, _ = self._cache.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted cache entry {evicted[:24]}")
        self._cache[key] = result

    def clear_cache(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._cache),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            max_size=self.config.max_cache_size,
        )

    # ------------------------------------------------------------------
    # Performance

    def get_performance_metrics(self) -> List[PerformanceMetric]:
        return self._tracker.metrics

    def get_performance_summary(self) -> PerformanceSummary:
        return self._tracker.summary()

    def clear_performance_metrics(self) -> None:
        self._tracker.clear()
