"""
Tests for candidate selection, the end-to-end selector and the CLI.
"""

import io
import itertools
import json
import logging
import math

import numpy as np
import pytest

# Test doubles


class FakeVideo:
    """In-memory stand-in for a loaded video."""

    def __init__(self, duration=60.0, size=(320, 240), ready=True):
        self._duration = duration
        self._size = size
        self._ready = ready

    def duration(self):
        return self._duration

    def is_metadata_ready(self):
        return self._ready

    def dimensions(self):
        return self._size


def noise_at(timestamp, width=320, height=240):
    rng = np.random.default_rng(int(timestamp * 1000))
    return rng.integers(0, 256, (height, width, 3), dtype=np.uint8)


class FakeFrameSource:
    """Produces frames from a function of the timestamp and records requests."""

    def __init__(self, make_frame=noise_at, error=None, drop=0):
        self.make_frame = make_frame
        self.error = error
        self.drop = drop
        self.requests = []

    def extract_frames(self, video, timestamps, on_progress=None):
        self.requests.append(list(timestamps))
        if self.error is not None:
            raise self.error

        frames = []
        for i, timestamp in enumerate(timestamps):
            frames.append(self.make_frame(timestamp))
            if on_progress is not None:
                on_progress(round((i + 1) / len(timestamps) * 100))
        return frames[:len(frames) - self.drop]


class SilentFrameSource(FakeFrameSource):
    """Frame source that never reports progress."""

    def extract_frames(self, video, timestamps, on_progress=None):
        return super().extract_frames(video, timestamps)


class FlakyEncoder:
    """Pillow encoder that fails on the given call indices."""

    def __init__(self, fail_calls=()):
        from thumbnail_selection.encoding import PillowImageEncoder

        self.inner = PillowImageEncoder()
        self.fail_calls = set(fail_calls)
        self.calls = 0

    def encode(self, buffer, format, quality):
        call = self.calls
        self.calls += 1
        if call in self.fail_calls:
            raise RuntimeError("encoder out of memory")
        return self.inner.encode(buffer, format, quality)


def scripted_score(score, timestamp, usable=True):
    from thumbnail_selection.types import FrameScore, FrameStatistics, ScoreComponents

    return FrameScore(
        score=score,
        statistics=FrameStatistics(
            brightness=0.5,
            contrast=0.5,
            sharpness=score,
            color_variance=0.5,
            is_black_frame=not usable,
            is_white_frame=False,
            is_blurry=False,
        ),
        components=ScoreComponents(sharpness=score, brightness=1.0, color_variance=0.5),
        is_usable=usable,
        issues=() if usable else ("Frame is predominantly black",),
        timestamp=timestamp,
    )


def make_scripted_scorer(script):
    """
    Scorer whose result depends only on the timestamp.

    ``script(t)`` returns a score, None for an unusable frame, or an
    exception instance to raise.
    """
    from thumbnail_selection.scorer import FrameScorer

    class ScriptedScorer(FrameScorer):
        def analyze(self, frame, timestamp=None):
            value = script(timestamp)
            if isinstance(value, Exception):
                raise value
            if value is None:
                return scripted_score(0.0, timestamp, usable=False)
            return scripted_score(value, timestamp)

    return ScriptedScorer()


def make_candidates(pairs):
    """ScoredCandidates from (timestamp, score) pairs, best first."""
    from thumbnail_selection.types import FrameHandle, ScoredCandidate

    candidates = [
        ScoredCandidate(
            score=scripted_score(score, timestamp),
            handle=FrameHandle(np.zeros((4, 4, 3), dtype=np.uint8), timestamp, i),
        )
        for i, (timestamp, score) in enumerate(pairs)
    ]
    return sorted(candidates, key=lambda c: -c.score.score)


def assert_spacing(timestamps, min_spacing):
    for a, b in itertools.combinations(timestamps, 2):
        assert abs(a - b) >= min_spacing - 1e-9


# Diversity tests


class TestDiversityFilter:
    """Test greedy spacing-constrained selection."""

    def test_minimum_spacing(self):
        from thumbnail_selection.selector import minimum_spacing

        assert minimum_spacing(60.0) == pytest.approx(3.0)
        assert minimum_spacing(200.0) == pytest.approx(5.0)

    def test_small_pool_returned_whole(self):
        from thumbnail_selection.selector import apply_diversity_filter

        candidates = make_candidates([(20.0, 0.5), (10.0, 0.9), (10.5, 0.7)])
        selected = apply_diversity_filter(candidates, 5, 60.0)

        assert [c.timestamp for c in selected] == [10.0, 10.5, 20.0]

    def test_clustered_candidates(self, caplog):
        from thumbnail_selection.selector import apply_diversity_filter

        candidates = make_candidates([(10.0, 0.9), (10.5, 0.8), (11.0, 0.7), (30.0, 0.6)])
        with caplog.at_level(logging.WARNING, logger="thumbnail_selection.selector"):
            selected = apply_diversity_filter(candidates, 3, 100.0)

        assert [c.timestamp for c in selected] == [10.0, 30.0]
        assert "Could only select 2 of 3" in caplog.text

    def test_spacing_invariant(self):
        from thumbnail_selection.selector import apply_diversity_filter, minimum_spacing

        rng = np.random.default_rng(7)
        pairs = list(zip(rng.uniform(0, 100, 40), rng.uniform(0, 1, 40)))
        candidates = make_candidates(pairs)

        selected = apply_diversity_filter(candidates, 5, 100.0)
        timestamps = [c.timestamp for c in selected]

        assert 1 <= len(selected) <= 5
        assert candidates[0] in selected
        assert timestamps == sorted(timestamps)
        assert_spacing(timestamps, minimum_spacing(100.0))


# Selector tests


class TestThumbnailSelector:
    """End-to-end selection with in-memory collaborators."""

    def test_standard_selection(self):
        from thumbnail_selection.selector import ThumbnailSelector, minimum_spacing

        source = FakeFrameSource()
        selector = ThumbnailSelector(
            source,
            scorer=make_scripted_scorer(lambda t: 1.0 - t / 100.0),
        )
        thumbnails = selector.generate(FakeVideo(60.0), {"count": 5})

        timestamps = [t.timestamp for t in thumbnails]
        assert len(thumbnails) == 5
        assert timestamps == sorted(timestamps)
        assert_spacing(timestamps, minimum_spacing(60.0))
        assert len(source.requests) == 1
        assert len(source.requests[0]) == 15

    def test_real_scorer_and_encoder(self):
        from thumbnail_selection.selector import ThumbnailSelector

        thumbnails = ThumbnailSelector(FakeFrameSource()).generate(FakeVideo(60.0))

        assert len(thumbnails) == 5
        for thumb in thumbnails:
            assert thumb.image.mime_type == "image/jpeg"
            assert thumb.image.data[:2] == b"\xff\xd8"
            assert (thumb.width, thumb.height) == (320, 240)
            assert 0.0 <= thumb.score <= 1.0

    def test_all_frames_black(self):
        from thumbnail_selection.errors import ErrorCode, ProcessingError
        from thumbnail_selection.resources import ResourceTracker
        from thumbnail_selection.selector import ThumbnailSelector

        tracker = ResourceTracker()
        source = FakeFrameSource(lambda t: np.zeros((240, 320, 3), dtype=np.uint8))
        selector = ThumbnailSelector(source, resources=tracker)

        with pytest.raises(ProcessingError) as exc_info:
            selector.generate(FakeVideo(60.0), {"count": 5})

        error = exc_info.value
        assert error.code == ErrorCode.PROCESSING_ERROR
        assert "All 15 candidate frames" in error.message
        assert error.details["usable_frames"] == 0
        assert error.details["total_candidates"] == 15
        assert error.details["strict_mode"] is False
        assert tracker.active_count == 0

    def test_single_usable_candidate(self):
        from thumbnail_selection.selector import ThumbnailSelector

        def script(t):
            return 0.9 if abs(t - 30.0) < 1e-6 else None

        selector = ThumbnailSelector(FakeFrameSource(), scorer=make_scripted_scorer(script))
        thumbnails = selector.generate(FakeVideo(60.0), {"count": 1})

        assert len(thumbnails) == 1
        assert thumbnails[0].score == pytest.approx(0.9)
        assert thumbnails[0].timestamp == pytest.approx(30.0)

    def test_progress_strictly_increasing(self):
        from thumbnail_selection.selector import ThumbnailSelector

        calls = []
        ThumbnailSelector(FakeFrameSource()).generate(FakeVideo(60.0), on_progress=calls.append)

        assert calls[0] == 0
        assert calls[-1] == 100
        assert 40 in calls
        assert 70 in calls
        assert all(a < b for a, b in zip(calls, calls[1:]))

    def test_progress_checkpoints_with_silent_source(self):
        from thumbnail_selection.selector import ThumbnailSelector

        calls = []
        ThumbnailSelector(SilentFrameSource()).generate(FakeVideo(60.0), on_progress=calls.append)

        checkpoints = [calls.index(p) for p in (0, 40, 70, 100)]
        assert checkpoints == sorted(checkpoints)
        assert all(a < b for a, b in zip(calls, calls[1:]))

    def test_failing_progress_callback_ignored(self):
        from thumbnail_selection.selector import ThumbnailSelector

        calls = []

        def callback(percent):
            calls.append(percent)
            raise RuntimeError("UI went away")

        thumbnails = ThumbnailSelector(FakeFrameSource()).generate(
            FakeVideo(60.0), on_progress=callback,
        )

        assert len(thumbnails) == 5
        assert calls[-1] == 100
        assert all(a < b for a, b in zip(calls, calls[1:]))

    @pytest.mark.parametrize("options", [
        {"count": 0},
        {"count": 11},
        {"quality": 2.0},
        {"format": "webp"},
        {"size": {"width": -1}},
    ])
    def test_invalid_options_fail_before_extraction(self, options):
        from thumbnail_selection.errors import InvalidInputError
        from thumbnail_selection.selector import ThumbnailSelector

        source = FakeFrameSource()
        with pytest.raises(InvalidInputError):
            ThumbnailSelector(source).generate(FakeVideo(60.0), options)
        assert source.requests == []

    @pytest.mark.parametrize("video", [
        FakeVideo(ready=False),
        FakeVideo(size=(0, 0)),
        FakeVideo(duration=0.0),
        FakeVideo(duration=float("nan")),
        None,
    ])
    def test_video_not_ready(self, video):
        from thumbnail_selection.errors import ErrorCode, VideoNotReadyError
        from thumbnail_selection.selector import ThumbnailSelector

        source = FakeFrameSource()
        with pytest.raises(VideoNotReadyError) as exc_info:
            ThumbnailSelector(source).generate(video)
        assert exc_info.value.code == ErrorCode.VIDEO_NOT_READY
        assert source.requests == []

    def test_options_instance_and_resize(self):
        from PIL import Image

        from thumbnail_selection.config import ThumbnailOptions, ThumbnailSize
        from thumbnail_selection.selector import ThumbnailSelector

        options = ThumbnailOptions(count=2, format="png", size=ThumbnailSize(width=160))
        thumbnails = ThumbnailSelector(FakeFrameSource()).generate(FakeVideo(60.0), options)

        assert len(thumbnails) == 2
        for thumb in thumbnails:
            assert (thumb.width, thumb.height) == (160, 120)
            assert thumb.image.mime_type == "image/png"
            assert Image.open(io.BytesIO(thumb.image.data)).size == (160, 120)

    def test_scoring_failure_drops_candidate(self):
        from thumbnail_selection.selector import ThumbnailSelector

        def script(t):
            if t < 4.0:
                return RuntimeError("corrupt frame")
            return 1.0 - t / 100.0

        selector = ThumbnailSelector(FakeFrameSource(), scorer=make_scripted_scorer(script))
        thumbnails = selector.generate(FakeVideo(60.0))

        assert len(thumbnails) == 5
        assert all(t.timestamp > 4.0 for t in thumbnails)
        assert any("Scoring failed" in d for d in selector.diagnostics)

    def test_partial_encoding_failure(self):
        from thumbnail_selection.selector import ThumbnailSelector

        selector = ThumbnailSelector(FakeFrameSource(), encoder=FlakyEncoder(fail_calls={0}))
        thumbnails = selector.generate(FakeVideo(60.0), {"count": 5})

        assert len(thumbnails) == 4
        assert any("Encoding failed" in d for d in selector.diagnostics)

    def test_single_encoding_failure_raises(self):
        from thumbnail_selection.errors import ProcessingError
        from thumbnail_selection.selector import ThumbnailSelector

        selector = ThumbnailSelector(FakeFrameSource(), encoder=FlakyEncoder(fail_calls={0}))
        with pytest.raises(ProcessingError) as exc_info:
            selector.generate(FakeVideo(60.0), {"count": 1})
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_all_encodings_fail(self):
        from thumbnail_selection.errors import ProcessingError
        from thumbnail_selection.selector import ThumbnailSelector

        selector = ThumbnailSelector(FakeFrameSource(), encoder=FlakyEncoder(fail_calls=range(10)))
        with pytest.raises(ProcessingError, match="Failed to generate any thumbnails"):
            selector.generate(FakeVideo(60.0), {"count": 3})

    def test_every_candidate_fails_scoring(self):
        from thumbnail_selection.config import SelectionConfig
        from thumbnail_selection.errors import ProcessingError
        from thumbnail_selection.resources import ResourceTracker
        from thumbnail_selection.selector import ThumbnailSelector

        tracker = ResourceTracker()
        selector = ThumbnailSelector(
            FakeFrameSource(),
            scorer=make_scripted_scorer(lambda t: RuntimeError("corrupt frame")),
            config=SelectionConfig(min_usable_frames=0),
            resources=tracker,
        )
        with pytest.raises(ProcessingError, match="Failed to generate any thumbnails"):
            selector.generate(FakeVideo(60.0))
        assert tracker.active_count == 0

    def test_single_resize_failure_keeps_render_error(self, monkeypatch):
        from thumbnail_selection import selector as selector_module
        from thumbnail_selection.errors import ErrorCode, RenderError

        def broken_resize(buffer, width=None, height=None):
            raise RenderError("Failed to resize frame", {"width": width})

        monkeypatch.setattr(selector_module, "resize_frame", broken_resize)
        selector = selector_module.ThumbnailSelector(FakeFrameSource())

        with pytest.raises(RenderError) as exc_info:
            selector.generate(FakeVideo(60.0), {"count": 1, "size": {"width": 64}})
        assert exc_info.value.code == ErrorCode.RENDER_ERROR

    def test_frame_source_errors(self):
        from thumbnail_selection.errors import CollaboratorTimeoutError, ProcessingError
        from thumbnail_selection.selector import ThumbnailSelector

        video = FakeVideo(60.0)

        with pytest.raises(ProcessingError) as exc_info:
            ThumbnailSelector(FakeFrameSource(error=OSError("decoder crashed"))).generate(video)
        assert isinstance(exc_info.value.__cause__, OSError)

        with pytest.raises(ProcessingError) as exc_info:
            ThumbnailSelector(FakeFrameSource(drop=1)).generate(video)
        assert exc_info.value.details == {"requested": 15, "returned": 14}

        timeout = CollaboratorTimeoutError("decoder timed out")
        with pytest.raises(CollaboratorTimeoutError):
            ThumbnailSelector(FakeFrameSource(error=timeout)).generate(video)

    def test_resources_released(self):
        from thumbnail_selection.resources import ResourceTracker
        from thumbnail_selection.selector import ThumbnailSelector

        tracker = ResourceTracker()
        selector = ThumbnailSelector(FakeFrameSource(), resources=tracker)
        selector.generate(FakeVideo(60.0), {"count": 3, "size": {"width": 64}})

        assert tracker.active_count == 0
        # 9 candidate frames plus 3 resized buffers
        assert tracker.released == 12

    def test_stage_timings(self):
        from thumbnail_selection.selector import ThumbnailSelector

        selector = ThumbnailSelector(FakeFrameSource())
        selector.generate(FakeVideo(60.0))

        assert set(selector.timings) == {
            "sampling_plan", "extraction", "scoring", "selection", "rendering",
        }
        assert all(elapsed >= 0 for elapsed in selector.timings.values())


# OpenCV collaborator tests


@pytest.fixture
def sample_video(tmp_path):
    """Write a short MJPG video of random frames: 40 frames at 10 fps."""
    import cv2

    path = tmp_path / "sample.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("MJPG video writer unavailable")

    rng = np.random.default_rng(0)
    for _ in range(40):
        writer.write(rng.integers(0, 256, (48, 64, 3), dtype=np.uint8))
    writer.release()
    return path


class TestOpenCVVideo:
    """Test the OpenCV-backed collaborators."""

    def test_missing_file(self, tmp_path):
        from thumbnail_selection.video import OpenCVVideo

        with pytest.raises(FileNotFoundError):
            OpenCVVideo(tmp_path / "missing.mp4")

    def test_metadata_and_frames(self, sample_video):
        from thumbnail_selection.video import OpenCVFrameSource, OpenCVVideo

        with OpenCVVideo(sample_video) as video:
            if video.frame_count == 0:
                pytest.skip("Backend reports no frame count")
            assert video.is_metadata_ready()
            assert video.dimensions() == (64, 48)
            assert video.duration() == pytest.approx(4.0, abs=0.2)

            frames = OpenCVFrameSource().extract_frames(video, [0.5, 2.0])
            assert len(frames) == 2
            assert frames[0].shape == (48, 64, 3)

        assert not video.is_metadata_ready()

    def test_generate_thumbnails(self, sample_video):
        from thumbnail_selection.selector import generate_thumbnails

        thumbnails = generate_thumbnails(sample_video, {"count": 1, "format": "png"})

        assert len(thumbnails) == 1
        assert thumbnails[0].image.mime_type == "image/png"
        assert 0.0 <= thumbnails[0].timestamp <= 4.0


# CLI tests


class TestCLI:
    """Test argument handling and output writing of run_selection."""

    def test_cli_overrides(self):
        from run_selection import build_config, parse_args

        args = parse_args([
            "--video", "clip.mp4", "-n", "3", "--format", "png",
            "--width", "320", "--strict", "--no-cache", "--analysis-scale", "0.5",
        ])
        config = build_config(args)

        assert str(config.video_path) == "clip.mp4"
        assert config.options.count == 3
        assert config.options.format == "png"
        assert config.options.size.width == 320
        assert config.options.size.height is None
        assert config.scorer.strict_mode is True
        assert config.scorer.statistics.cache is False
        assert config.scorer.statistics.analysis_scale == 0.5

    def test_cli_overrides_config_file(self, tmp_path):
        from run_selection import build_config, parse_args
        from thumbnail_selection.utils.io import save_config

        path = tmp_path / "config.yaml"
        save_config({"options": {"count": 2, "quality": 0.5}}, path)

        config = build_config(parse_args(["--config", str(path), "--count", "4"]))
        assert config.options.count == 4
        assert config.options.quality == 0.5

    def test_cli_rejects_invalid_count(self):
        from run_selection import build_config, parse_args
        from thumbnail_selection.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            build_config(parse_args(["--video", "clip.mp4", "--count", "20"]))

    def test_save_thumbnails(self, tmp_path):
        from run_selection import save_thumbnails
        from thumbnail_selection.types import EncodedImage, SelectedThumbnail

        thumbnails = [
            SelectedThumbnail(
                image=EncodedImage(data=b"\xff\xd8jpeg", mime_type="image/jpeg", width=8, height=6),
                timestamp=t,
                score=0.5,
                width=8,
                height=6,
            )
            for t in (3.0, 12.5)
        ]
        save_thumbnails(thumbnails, tmp_path)

        files = sorted(p.name for p in (tmp_path / "thumbnails").iterdir())
        assert len(files) == 2
        assert all(name.endswith(".jpg") for name in files)

        manifest = json.loads((tmp_path / "thumbnails.json").read_text())
        assert manifest["count"] == 2
        assert [e["timestamp"] for e in manifest["thumbnails"]] == [3.0, 12.5]
        assert math.isclose(manifest["thumbnails"][0]["score"], 0.5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
