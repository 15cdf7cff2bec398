"""
Sampling plan computation.

Turns a video duration and a requested thumbnail count into the list of
candidate timestamps that will be requested from the frame source.
"""

import logging
import math
from typing import List, Optional

from .config import SelectionConfig
from .errors import InvalidInputError
from .types import SamplingPlan

logger = logging.getLogger(__name__)


def candidate_multiplier(duration: float, config: SelectionConfig) -> int:
    """
    Candidates to sample per requested thumbnail.

    Short clips use ``max(2, floor(duration / 10))`` so that neighbouring
    near-duplicate frames are not over-sampled.
    """
    if duration < config.short_video_threshold:
        return max(2, int(math.floor(duration / 10.0)))
    return config.candidate_multiplier


def compute_sampling_plan(
    duration: float,
    count: int,
    config: Optional[SelectionConfig] = None,
) -> SamplingPlan:
    """
    Compute candidate timestamps for a video.

    The usable window skips a margin at both ends (likely fades). Candidates
    are spread evenly across it, never closer than the minimum candidate
    spacing. A degenerate window falls back to a single midpoint candidate.

    Args:
        duration: Video duration in seconds.
        count: Requested number of thumbnails.
        config: Selection constants. Uses defaults if None.

    Returns:
        SamplingPlan with at least one timestamp.

    Raises:
        InvalidInputError: If duration is not finite and positive, or count < 1.
    """
    config = config or SelectionConfig()

    if not math.isfinite(duration) or duration <= 0:
        raise InvalidInputError(
            "Duration must be a finite positive number",
            {"duration": duration},
        )
    if count < 1:
        raise InvalidInputError("Count must be at least 1", {"count": count})

    margin = duration * config.video_margin
    start_time = margin
    end_time = duration - margin
    usable_duration = end_time - start_time

    candidate_count = count * candidate_multiplier(duration, config)
    if candidate_count > 1:
        interval = usable_duration / (candidate_count - 1)
    else:
        interval = usable_duration
    interval = max(interval, config.min_candidate_spacing)

    timestamps: List[float] = []
    # Absorb float error at the window end
    limit = end_time + 1e-9
    for i in range(candidate_count):
        t = start_time + i * interval
        if t > limit:
            break
        timestamps.append(min(t, end_time))

    if not timestamps:
        timestamps.append(duration / 2.0)

    logger.debug(
        f"Sampling plan: {len(timestamps)} of {candidate_count} candidates, "
        f"interval {interval:.2f}s over [{start_time:.2f}s, {end_time:.2f}s]"
    )

    return SamplingPlan(
        timestamps=tuple(timestamps),
        interval=interval,
        candidate_count=candidate_count,
        start_time=start_time,
        end_time=end_time,
    )
