"""
Interfaces of the external collaborators used by the selector.

Decoding, encoding and video loading live outside the selection engine;
anything implementing these protocols can be plugged in.
"""

from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

from .types import EncodedImage, FrameBuffer
from .utils.progress import ProgressCallback


@runtime_checkable
class VideoHandle(Protocol):
    """Read-only view of a loaded video."""

    def duration(self) -> float:
        """Duration in seconds."""
        ...

    def is_metadata_ready(self) -> bool:
        ...

    def dimensions(self) -> Tuple[int, int]:
        """(width, height) in pixels."""
        ...


@runtime_checkable
class FrameSource(Protocol):
    """Decodes frames of a video at given timestamps."""

    def extract_frames(
        self,
        video: VideoHandle,
        timestamps: Sequence[float],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Sequence[FrameBuffer]:
        """
        Return one frame per timestamp, in request order.

        Implementations must either return exactly ``len(timestamps)``
        frames or raise.
        """
        ...


@runtime_checkable
class ImageEncoder(Protocol):
    """Encodes frames into a distributable image format."""

    def encode(self, buffer: FrameBuffer, format: str, quality: float) -> EncodedImage:
        ...
