"""
Thumbnail selection orchestration.

Samples candidate frames across a video, scores and filters them, and picks
a high-quality subset spread across the timeline.
"""

import logging
import math
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import PipelineConfig, SelectionConfig, ThumbnailOptions
from .encoding import PillowImageEncoder, resize_frame
from .errors import ProcessingError, ThumbnailError, VideoNotReadyError
from .interfaces import FrameSource, ImageEncoder, VideoHandle
from .resources import ResourceKind, ResourceTracker
from .sampling import compute_sampling_plan
from .scorer import FrameScorer
from .types import FrameHandle, SamplingPlan, ScoredCandidate, SelectedThumbnail
from .utils.progress import ProgressCallback, ProgressReporter
from .utils.timing import Timer, format_timings

logger = logging.getLogger(__name__)

OptionsLike = Union[ThumbnailOptions, Dict[str, Any], None]


def minimum_spacing(duration: float, config: Optional[SelectionConfig] = None) -> float:
    """Required distance between selected thumbnails (seconds)."""
    config = config or SelectionConfig()
    return min(config.min_thumbnail_spacing, duration * config.thumbnail_spacing_ratio)


def apply_diversity_filter(
    candidates: Sequence[ScoredCandidate],
    count: int,
    duration: float,
    config: Optional[SelectionConfig] = None,
) -> List[ScoredCandidate]:
    """
    Greedy quality-first selection under a minimum temporal spacing.

    The best candidate is always taken. Each following candidate, in
    descending score order, is accepted only if it lies at least
    ``minimum_spacing(duration)`` from every accepted one. When the pool
    is no larger than ``count`` it is returned whole.

    Args:
        candidates: Usable candidates sorted best first.
        count: Requested number of thumbnails.
        duration: Video duration in seconds.
        config: Selection constants. Uses defaults if None.

    Returns:
        Selected candidates sorted by timestamp.
    """
    if len(candidates) <= count:
        return sorted(candidates, key=lambda c: c.timestamp)

    min_spacing = minimum_spacing(duration, config)
    selected: List[ScoredCandidate] = [candidates[0]]

    for candidate in candidates[1:]:
        if len(selected) >= count:
            break
        if all(abs(candidate.timestamp - s.timestamp) >= min_spacing for s in selected):
            selected.append(candidate)

    if len(selected) < count:
        logger.warning(
            f"Could only select {len(selected)} of {count} requested thumbnails "
            f"with {min_spacing:.2f}s minimum spacing. Video may be too short "
            f"or good frames are clustered."
        )

    return sorted(selected, key=lambda c: c.timestamp)


class ThumbnailSelector:
    """
    End-to-end thumbnail selection.

    Orchestrates all stages:
        1. Video and option validation (fail fast)
        2. Sampling plan from duration and count
        3. One batch extraction from the frame source (0-40% progress)
        4. Scoring and filtering of candidates (40-70%)
        5. Diversity-constrained greedy selection
        6. Resize and encode of the selection (70-100%)
        7. Release of candidate frames

    All computation runs synchronously on the calling thread; the frame
    source and encoder are the only external calls.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        scorer: Optional[FrameScorer] = None,
        encoder: Optional[ImageEncoder] = None,
        config: Optional[SelectionConfig] = None,
        resources: Optional[ResourceTracker] = None,
        verbose: bool = False,
    ):
        """
        Initialize selector with its collaborators.

        Args:
            frame_source: Decodes candidate frames.
            scorer: Frame scorer. Default scorer if None.
            encoder: Image encoder. Pillow encoder if None.
            config: Selection constants. Uses defaults if None.
            resources: Tracker owning candidate frames. New tracker if None.
            verbose: Log stage timings at INFO level.
        """
        self.frame_source = frame_source
        self.scorer = scorer or FrameScorer()
        self.encoder = encoder or PillowImageEncoder()
        self.config = config or SelectionConfig()
        self.resources = resources or ResourceTracker()
        self.verbose = verbose

        self.timings: Dict[str, float] = {}
        self.diagnostics: List[str] = []

    def generate(
        self,
        video: VideoHandle,
        options: OptionsLike = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[SelectedThumbnail]:
        """
        Select and encode thumbnails for a video.

        Args:
            video: Loaded video handle.
            options: ThumbnailOptions or a mapping of option values.
            on_progress: Called synchronously with increasing percentages.

        Returns:
            Non-empty list of thumbnails sorted by timestamp.

        Raises:
            VideoNotReadyError: If the video metadata is unusable.
            InvalidInputError: If an option is out of range.
            ProcessingError: If no usable frame exists or nothing could be encoded.
            RenderError: If resizing the only selected frame fails.
        """
        self.validate_video(video)
        if not isinstance(options, ThumbnailOptions):
            options = ThumbnailOptions.from_dict(options)

        self.timings = {}
        self.diagnostics = []
        progress = ProgressReporter(on_progress)
        duration = float(video.duration())

        try:
            with Timer("1_sampling_plan", log=self.verbose) as t:
                plan = self.plan(duration, options.count)
            self.timings["sampling_plan"] = t.elapsed

            progress.report(0)

            with Timer("2_extraction", log=self.verbose) as t:
                handles = self._extract_candidates(video, plan, progress.phase(0, 40))
            self.timings["extraction"] = t.elapsed

            progress.report(40)

            with Timer("3_scoring", log=self.verbose) as t:
                usable = self.score_and_filter(handles, progress.phase(40, 70))
            self.timings["scoring"] = t.elapsed

            progress.report(70)

            with Timer("4_selection", log=self.verbose) as t:
                selected = apply_diversity_filter(usable, options.count, duration, self.config)
            self.timings["selection"] = t.elapsed

            if len(selected) < min(options.count, len(usable)):
                self.diagnostics.append(
                    f"Diversity spacing limited the result to {len(selected)} of "
                    f"{options.count} requested thumbnails"
                )

            kept = {id(c.handle) for c in selected}
            for handle in handles:
                if id(handle) not in kept:
                    self.resources.release(handle)

            with Timer("5_rendering", log=self.verbose) as t:
                thumbnails = self._render(selected, options, progress.phase(70, 100))
            self.timings["rendering"] = t.elapsed

            progress.report(100)
        finally:
            self.resources.release_all()

        logger.info(f"Selected {len(thumbnails)} thumbnails from {len(plan)} candidates")
        logger.debug(format_timings(self.timings))
        return thumbnails

    # ------------------------------------------------------------------
    # Stages

    def validate_video(self, video: VideoHandle) -> None:
        """Raise VideoNotReadyError unless metadata, size and duration are usable."""
        if video is None or not video.is_metadata_ready():
            raise VideoNotReadyError(
                "Video metadata not loaded. Ensure the video is loaded before "
                "generating thumbnails."
            )

        width, height = video.dimensions()
        if not width or not height:
            raise VideoNotReadyError(
                f"Video has invalid dimensions ({width}x{height}). The video may be "
                f"audio-only or corrupted.",
                {"width": width, "height": height},
            )

        duration = video.duration()
        if duration is None or not math.isfinite(duration) or duration <= 0:
            raise VideoNotReadyError(
                "Video has invalid duration. The video may be corrupted or still loading.",
                {"duration": duration},
            )

    def plan(self, duration: float, count: int) -> SamplingPlan:
        plan = compute_sampling_plan(duration, count, self.config)
        logger.info(
            f"Sampling {len(plan)} candidates every {plan.interval:.2f}s "
            f"for {count} thumbnails"
        )
        return plan

    def _extract_candidates(
        self,
        video: VideoHandle,
        plan: SamplingPlan,
        on_progress: ProgressCallback,
    ) -> List[FrameHandle]:
        timestamps = list(plan.timestamps)
        try:
            buffers = self.frame_source.extract_frames(video, timestamps, on_progress)
        except ThumbnailError:
            raise
        except Exception as e:
            raise ProcessingError(
                f"Failed to extract candidate frames from video: {e}",
                {"candidates": len(timestamps)},
            ) from e

        if len(buffers) != len(timestamps):
            raise ProcessingError(
                "Frame source returned a different number of frames than requested",
                {"requested": len(timestamps), "returned": len(buffers)},
            )

        handles = []
        for index, (buffer, timestamp) in enumerate(zip(buffers, timestamps)):
            handle = FrameHandle(buffer, timestamp, index)
            self.resources.track(ResourceKind.FRAME, handle, label=f"{timestamp:.2f}s")
            handles.append(handle)
        return handles

    def score_and_filter(
        self,
        handles: Sequence[FrameHandle],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ScoredCandidate]:
        """
        Score candidates in source order and keep the usable ones, best first.

        A candidate whose scoring raises is logged and dropped.

        Raises:
            ProcessingError: If fewer than the minimum number of frames is usable.
        """
        scored: List[ScoredCandidate] = []
        total = len(handles)

        for i, handle in enumerate(handles):
            try:
                score = self.scorer.analyze(handle.buffer, handle.timestamp)
            except Exception as e:
                logger.warning(f"Failed to score frame at {handle.timestamp:.2f}s: {e}")
                self.diagnostics.append(f"Scoring failed at {handle.timestamp:.2f}s: {e}")
                continue

            scored.append(ScoredCandidate(score=score, handle=handle))
            if on_progress is not None:
                on_progress(round((i + 1) / total * 100))

        usable = [c for c in scored if c.score.is_usable]
        if len(usable) < self.config.min_usable_frames:
            raise ProcessingError(
                f"Could not find any usable frames. All {len(scored)} candidate frames "
                f"were filtered out (black, white, or too blurry).",
                {
                    "total_candidates": total,
                    "scored_frames": len(scored),
                    "usable_frames": len(usable),
                    "strict_mode": self.scorer.is_strict_mode(),
                },
            )

        comparator = cmp_to_key(FrameScorer.get_comparator())
        usable.sort(key=lambda c: comparator(c.score))

        # Scoring may drop every candidate when no minimum is enforced
        filter_rate = 1.0 - len(usable) / len(scored) if scored else 0.0
        if filter_rate > self.config.high_filter_rate:
            logger.warning(
                f"High filter rate: {round(filter_rate * 100)}% of frames were filtered "
                f"as unusable. This may indicate low video quality or excessive "
                f"fades/transitions."
            )

        logger.info(f"{len(usable)} of {total} candidates usable")
        return usable

    def _render(
        self,
        selected: Sequence[ScoredCandidate],
        options: ThumbnailOptions,
        on_progress: ProgressCallback,
    ) -> List[SelectedThumbnail]:
        thumbnails: List[SelectedThumbnail] = []
        size = options.size

        for i, candidate in enumerate(selected):
            timestamp = candidate.timestamp
            try:
                buffer = candidate.handle.buffer
                if size is not None:
                    resized = resize_frame(buffer, size.width, size.height)
                    if resized is not buffer:
                        self.resources.track(ResourceKind.BUFFER, resized, label=f"resized {timestamp:.2f}s")
                    buffer = resized

                image = self.encoder.encode(buffer, options.format, options.quality)
                height, width = buffer.shape[:2]
                thumbnails.append(SelectedThumbnail(
                    image=image,
                    timestamp=timestamp,
                    score=candidate.score.score,
                    width=int(width),
                    height=int(height),
                ))
                self.resources.release(buffer)
            except Exception as e:
                logger.error(f"Failed to generate thumbnail at {timestamp:.2f}s: {e}")
                if len(selected) == 1:
                    if isinstance(e, ThumbnailError):
                        raise
                    raise ProcessingError(
                        f"Failed to generate thumbnail: {e}",
                        {"timestamp": timestamp},
                    ) from e
                self.diagnostics.append(f"Encoding failed at {timestamp:.2f}s: {e}")
            finally:
                on_progress(round((i + 1) / len(selected) * 100))

        if not thumbnails:
            raise ProcessingError(
                "Failed to generate any thumbnails from selected frames.",
                {"selected": len(selected)},
            )
        return thumbnails


def generate_thumbnails(
    video_path: Union[str, Path],
    options: OptionsLike = None,
    config: Optional[PipelineConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[SelectedThumbnail]:
    """
    Convenience function to select thumbnails from a video file.

    Args:
        video_path: Path to video file.
        options: Thumbnail options; falls back to ``config.options``.
        config: Pipeline configuration. Uses defaults if None.
        on_progress: Optional progress callback.

    Returns:
        Selected thumbnails sorted by timestamp.
    """
    from .video import OpenCVFrameSource, OpenCVVideo

    config = config or PipelineConfig()
    selector = ThumbnailSelector(
        frame_source=OpenCVFrameSource(),
        scorer=FrameScorer(config.scorer),
        encoder=PillowImageEncoder(),
        config=config.selection,
        verbose=config.verbose,
    )

    with OpenCVVideo(video_path) as video:
        return selector.generate(
            video,
            options if options is not None else config.options,
            on_progress,
        )
