"""
OpenCV-backed video handle and frame source.

Default collaborators for running the selector on video files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .errors import ProcessingError, VideoNotReadyError
from .resources import Resource, ResourceKind, dispose
from .types import FrameBuffer
from .utils.progress import ProgressCallback

logger = logging.getLogger(__name__)


class OpenCVVideo:
    """
    Video file opened with ``cv2.VideoCapture``.

    Usage:
        with OpenCVVideo("clip.mp4") as video:
            print(video.duration(), video.dimensions())
    """

    def __init__(self, video_path: Union[str, Path]):
        """
        Open a video file.

        Args:
            video_path: Path to input video.

        Raises:
            FileNotFoundError: If the file does not exist.
            VideoNotReadyError: If OpenCV cannot open it.
        """
        self.path = Path(video_path)
        if not self.path.exists():
            raise FileNotFoundError(f"Video not found: {self.path}")

        self.capture = cv2.VideoCapture(str(self.path))
        if not self.capture.isOpened():
            raise VideoNotReadyError(
                f"Could not open video: {self.path}",
                {"path": str(self.path)},
            )

        self.fps = float(self.capture.get(cv2.CAP_PROP_FPS) or 0.0)
        self.frame_count = int(self.capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self.width = int(self.capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        self.height = int(self.capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        self._closed = False

        logger.info(
            f"Video: {self.path.name} | "
            f"FPS: {self.fps:.2f} | "
            f"Frames: {self.frame_count} | "
            f"Duration: {self.duration():.2f}s"
        )

    def duration(self) -> float:
        if self.fps <= 0:
            return 0.0
        return self.frame_count / self.fps

    def is_metadata_ready(self) -> bool:
        return not self._closed and self.fps > 0 and self.frame_count > 0

    def dimensions(self) -> Tuple[int, int]:
        return self.width, self.height

    def metadata(self) -> Dict[str, Any]:
        """Video metadata as a plain dictionary."""
        codec = int(self.capture.get(cv2.CAP_PROP_FOURCC) or 0)
        codec_str = "".join([chr((codec >> 8 * i) & 0xFF) for i in range(4)])
        return {
            "fps": self.fps,
            "frame_count": self.frame_count,
            "duration": self.duration(),
            "width": self.width,
            "height": self.height,
            "codec": codec_str,
            "path": str(self.path),
        }

    def close(self) -> None:
        if not self._closed:
            dispose(Resource(ResourceKind.CAPTURE, self.capture, label=self.path.name))
            self._closed = True

    def __enter__(self) -> "OpenCVVideo":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class OpenCVFrameSource:
    """
    Decode frames at arbitrary timestamps from an ``OpenCVVideo``.

    Frames are returned as RGB ``uint8`` arrays in request order.
    """

    def __init__(self, end_guard: float = 0.05):
        """
        Args:
            end_guard: Seconds kept clear of the video end; seeking exactly
                to the end yields no frame with most decoders.
        """
        self.end_guard = end_guard

    def extract_frames(
        self,
        video: OpenCVVideo,
        timestamps: Sequence[float],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[FrameBuffer]:
        frames: List[FrameBuffer] = []
        total = len(timestamps)

        for i, timestamp in enumerate(timestamps):
            frames.append(self.extract_frame(video, timestamp))
            if on_progress is not None:
                on_progress(round((i + 1) / total * 100))

        logger.info(f"Extracted {len(frames)} frames")
        return frames

    def extract_frame(self, video: OpenCVVideo, timestamp: float) -> FrameBuffer:
        """
        Decode the frame shown at ``timestamp`` seconds.

        Raises:
            ProcessingError: If the decoder returns no frame.
        """
        duration = video.duration()
        target = min(max(0.0, timestamp), max(0.0, duration - self.end_guard))

        video.capture.set(cv2.CAP_PROP_POS_MSEC, target * 1000.0)
        ok, frame = video.capture.read()
        if not ok or frame is None:
            raise ProcessingError(
                f"Failed to decode frame at {timestamp:.2f}s",
                {"timestamp": timestamp, "path": str(video.path)},
            )

        if frame.ndim == 2:
            return frame
        return np.ascontiguousarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
