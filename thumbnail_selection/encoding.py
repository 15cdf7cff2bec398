"""
Resizing and encoding of selected frames.
"""

import io
import logging
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from .errors import InvalidInputError, RenderError
from .types import EncodedImage, FrameBuffer

logger = logging.getLogger(__name__)

# Pillow JPEG quality above 95 only grows files
MAX_JPEG_QUALITY = 95


def resize_dimensions(
    width: int,
    height: int,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Output size for a resize request.

    Both sides given: used as-is. One side given: the other follows the
    source aspect ratio. Neither: the source size.
    """
    if target_width and target_height:
        return target_width, target_height
    if target_width:
        return target_width, max(1, int(round(height / width * target_width)))
    if target_height:
        return max(1, int(round(width / height * target_height))), target_height
    return width, height


def resize_frame(
    buffer: FrameBuffer,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> FrameBuffer:
    """
    Resize a frame, preserving aspect ratio when only one side is given.

    Returns the input unchanged when no size is requested or the size
    already matches.

    Raises:
        RenderError: If the imaging backend fails.
    """
    src_h, src_w = buffer.shape[:2]
    new_w, new_h = resize_dimensions(src_w, src_h, width, height)
    if (new_w, new_h) == (src_w, src_h):
        return buffer

    # Area interpolation for shrinking, cubic for enlarging
    shrinking = new_w * new_h < src_w * src_h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_CUBIC
    try:
        return cv2.resize(np.ascontiguousarray(buffer), (new_w, new_h), interpolation=interpolation)
    except cv2.error as e:
        raise RenderError(
            f"Failed to resize frame: {e}",
            {"width": new_w, "height": new_h},
        ) from e


class PillowImageEncoder:
    """
    Encode RGB(A) or gray frames to JPEG or PNG bytes with Pillow.

    Quality in [0, 1] maps to JPEG quality 1-95; PNG is lossless and
    ignores it.
    """

    def __init__(self, optimize: bool = True):
        self.optimize = optimize

    def encode(self, buffer: FrameBuffer, format: str, quality: float) -> EncodedImage:
        fmt = format.lower()
        if fmt not in ("jpeg", "png"):
            raise InvalidInputError(
                f"Format must be 'jpeg' or 'png'. Received: {format!r}",
                {"format": format},
            )

        image = Image.fromarray(self._to_image_array(buffer))
        if fmt == "jpeg" and image.mode not in ("RGB", "L"):
            # JPEG carries no alpha channel
            image = image.convert("RGB")

        save_kwargs = {"optimize": self.optimize}
        if fmt == "jpeg":
            save_kwargs["quality"] = max(1, int(round(quality * MAX_JPEG_QUALITY)))

        out = io.BytesIO()
        image.save(out, format=fmt.upper(), **save_kwargs)

        return EncodedImage(
            data=out.getvalue(),
            mime_type=f"image/{fmt}",
            width=image.width,
            height=image.height,
        )

    @staticmethod
    def _to_image_array(buffer: FrameBuffer) -> np.ndarray:
        array = np.asarray(buffer)
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)
        if array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]
        return np.ascontiguousarray(array)
