"""
Frame scoring for thumbnail selection.

Combines sharpness, brightness quality and color variance into one weighted
score and decides whether a frame is usable as a thumbnail.
"""

import logging
from dataclasses import asdict, replace
from typing import Callable, Optional

from .config import ScorerConfig, ScoringWeights
from .frame_statistics import StatisticsEngine
from .types import (
    FrameBuffer,
    FrameComparison,
    FrameScore,
    FrameStatistics,
    ScoreComponents,
)

logger = logging.getLogger(__name__)

STRICT_USABILITY_THRESHOLD = 0.3
NORMAL_USABILITY_THRESHOLD = 0.1

# Blurry frames stay usable when scoring at least this share of the threshold
BLURRY_TOLERANCE = 0.8

TIE_THRESHOLD = 0.001

ISSUE_BLACK = "Frame is predominantly black (fade out or invalid frame)"
ISSUE_WHITE = "Frame is overexposed or predominantly white (fade in or invalid frame)"
ISSUE_BLURRY = "Frame is out of focus or blurry (low sharpness)"


def brightness_quality(brightness: float) -> float:
    """
    Triangular quality of a brightness value, peaking at mid-gray.

    0.5 -> 1.0, 0.4 or 0.6 -> 0.8, 0.0 or 1.0 -> 0.0.
    """
    return max(0.0, min(1.0, 1.0 - 2.0 * abs(brightness - 0.5)))


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class FrameScorer:
    """
    Score frames for thumbnail suitability.

    The score is a weighted sum of:
        - sharpness (default 40%)
        - brightness quality (default 30%)
        - color variance (default 30%)

    Black and white frames are never usable. Blurry frames are usable only
    when their score clears 80% of the active usability threshold.
    """

    def __init__(
        self,
        config: Optional[ScorerConfig] = None,
        engine: Optional[StatisticsEngine] = None,
    ):
        """
        Initialize frame scorer.

        Args:
            config: Scoring configuration. Uses defaults if None.
            engine: Statistics engine to use. Built from config if None.
        """
        self.config = config or ScorerConfig()
        self.engine = engine or StatisticsEngine(
            self.config.statistics,
            self.config.thresholds,
        )
        self._weights = replace(self.config.weights)
        self._strict_mode = self.config.strict_mode
        self._warn_if_unnormalized(self._weights)

    # ------------------------------------------------------------------
    # Scoring

    def analyze(
        self,
        frame: Optional[FrameBuffer],
        timestamp: Optional[float] = None,
    ) -> FrameScore:
        """
        Score a frame.

        Invalid frames never raise; they produce an unusable zero score
        whose issues describe the validation failure. A missing frame is
        rejected even when the engine skips validation.

        Args:
            frame: Decoded frame to score.
            timestamp: Optional position of the frame in the video (seconds).

        Returns:
            FrameScore with statistics, components and usability verdict.
        """
        if frame is None or not self.engine.validate(frame):
            return self._unusable_score(
                "Frame validation failed - missing or zero-sized frame buffer",
                timestamp,
            )

        analysis = self.engine.analyze(frame, timestamp)
        score = self.score_statistics(analysis.statistics, timestamp)

        metadata = dict(score.metadata)
        metadata["frame_size"] = {"width": analysis.width, "height": analysis.height}
        return replace(score, metadata=metadata)

    def score_statistics(
        self,
        statistics: FrameStatistics,
        timestamp: Optional[float] = None,
    ) -> FrameScore:
        """
        Turn precomputed statistics into a FrameScore.

        Args:
            statistics: Frame statistics from the engine.
            timestamp: Optional frame timestamp (seconds).

        Returns:
            FrameScore under the current weights and mode.
        """
        components = ScoreComponents(
            sharpness=_clamp(statistics.sharpness),
            brightness=brightness_quality(statistics.brightness),
            color_variance=_clamp(statistics.color_variance),
        )

        weights = self._weights
        score = _clamp(
            components.sharpness * weights.sharpness
            + components.brightness * weights.brightness
            + components.color_variance * weights.color_variance
        )

        threshold = self.usability_threshold
        issues = []
        if statistics.is_black_frame:
            issues.append(ISSUE_BLACK)
        if statistics.is_white_frame:
            issues.append(ISSUE_WHITE)
        if statistics.is_blurry:
            issues.append(ISSUE_BLURRY)
        if score < threshold:
            issues.append(
                f"Overall quality score ({score:.2f}) below threshold ({threshold})"
            )

        is_usable = (
            not statistics.is_black_frame
            and not statistics.is_white_frame
            and (not statistics.is_blurry or score >= threshold * BLURRY_TOLERANCE)
        )

        return FrameScore(
            score=score,
            statistics=statistics,
            components=components,
            is_usable=is_usable,
            issues=tuple(issues),
            timestamp=timestamp,
            metadata={
                "weights": asdict(weights),
                "strict_mode": self._strict_mode,
            },
        )

    def _unusable_score(self, reason: str, timestamp: Optional[float]) -> FrameScore:
        return FrameScore(
            score=0.0,
            statistics=FrameStatistics(
                brightness=0.0,
                contrast=0.0,
                sharpness=0.0,
                color_variance=0.0,
                is_black_frame=True,
                is_white_frame=False,
                is_blurry=True,
            ),
            components=ScoreComponents(sharpness=0.0, brightness=0.0, color_variance=0.0),
            is_usable=False,
            issues=(reason,),
            timestamp=timestamp,
            metadata={
                "weights": asdict(self._weights),
                "strict_mode": self._strict_mode,
                "error": True,
            },
        )

    # ------------------------------------------------------------------
    # Convenience

    def is_usable_frame(self, frame: Optional[FrameBuffer]) -> bool:
        return self.analyze(frame).is_usable

    def compare_frames(
        self,
        frame_a: Optional[FrameBuffer],
        frame_b: Optional[FrameBuffer],
    ) -> FrameComparison:
        """
        Score two frames and report which one makes the better thumbnail.

        A difference below 0.001 is a tie.
        """
        score_a = self.analyze(frame_a)
        score_b = self.analyze(frame_b)
        difference = score_a.score - score_b.score

        if abs(difference) < TIE_THRESHOLD:
            winner = "tie"
        elif difference > 0:
            winner = "a"
        else:
            winner = "b"

        return FrameComparison(
            winner=winner,
            score_difference=difference,
            scores=(score_a, score_b),
        )

    @staticmethod
    def get_comparator() -> Callable[[FrameScore, FrameScore], int]:
        """
        Comparator ordering scores best first.

        Use with ``functools.cmp_to_key``. Ties on score prefer usable
        frames, then higher sharpness.
        """
        def compare(a: FrameScore, b: FrameScore) -> int:
            if a.score != b.score:
                return -1 if a.score > b.score else 1
            if a.is_usable != b.is_usable:
                return -1 if a.is_usable else 1
            if a.components.sharpness != b.components.sharpness:
                return -1 if a.components.sharpness > b.components.sharpness else 1
            return 0

        return compare

    # ------------------------------------------------------------------
    # Configuration

    @property
    def usability_threshold(self) -> float:
        return STRICT_USABILITY_THRESHOLD if self._strict_mode else NORMAL_USABILITY_THRESHOLD

    def set_weights(self, **weights: float) -> None:
        """
        Update some or all weights.

        Non-normalized weight sets are applied as given after a warning.

        Raises:
            ValueError: On an unknown weight name.
        """
        unknown = sorted(set(weights) - set(asdict(self._weights)))
        if unknown:
            raise ValueError(f"Unknown scoring weights: {', '.join(unknown)}")

        self._weights = replace(self._weights, **weights)
        self._warn_if_unnormalized(self._weights)

    def get_weights(self) -> ScoringWeights:
        return replace(self._weights)

    def set_strict_mode(self, strict: bool) -> None:
        self._strict_mode = bool(strict)

    def is_strict_mode(self) -> bool:
        return self._strict_mode

    @staticmethod
    def _warn_if_unnormalized(weights: ScoringWeights) -> None:
        if not weights.is_normalized():
            logger.warning(
                f"Scoring weights should sum to 1.0, got {weights.total():.3f}. "
                f"Scores may be unnormalized."
            )
