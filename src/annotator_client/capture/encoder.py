"""
Frame Encoder
=============

Downsampling and base64 JPEG encoding of captured frames.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Fixed target width, height scaled to preserve aspect ratio
    - Lossy JPEG at a fixed quality factor
    - Fails fast on empty or malformed frames
"""

import base64
import logging
from typing import Tuple

import cv2
import numpy as np

from annotator_client.errors import FrameEncodeError


logger = logging.getLogger(__name__)


TARGET_WIDTH = 320
JPEG_QUALITY = 40


def downsample_size(width: int, height: int, target_width: int = TARGET_WIDTH) -> Tuple[int, int]:
    """
    Compute the downsampled (width, height) for a source frame.

    Args:
        width: Native frame width in pixels
        height: Native frame height in pixels
        target_width: Fixed output width

    Returns:
        (target_width, scaled_height), height at least 1 pixel
    """
    if width <= 0 or height <= 0:
        raise FrameEncodeError(f"Cannot downsample frame of size {width}x{height}")
    target_height = max(1, int(round(height * target_width / width)))
    return target_width, target_height


def downsample(frame: np.ndarray, target_width: int = TARGET_WIDTH) -> np.ndarray:
    """
    Resize a BGR frame to the fixed target width.

    Args:
        frame: BGR image as np.ndarray (H, W, 3), dtype=uint8

    Returns:
        Resized BGR image

    Raises:
        FrameEncodeError: If the frame is empty or not an image
    """
    if frame is None or frame.ndim < 2:
        raise FrameEncodeError("Frame is not an image array")

    height, width = frame.shape[:2]
    size = downsample_size(width, height, target_width)
    interpolation = cv2.INTER_AREA if size[0] < width else cv2.INTER_LINEAR
    return cv2.resize(frame, size, interpolation=interpolation)


def encode_jpeg_b64(frame: np.ndarray, quality: int = JPEG_QUALITY) -> str:
    """
    Encode a BGR frame as base64 JPEG text.

    Args:
        frame: BGR image as np.ndarray
        quality: JPEG quality factor (1-100)

    Returns:
        Base64-encoded JPEG data (ASCII)

    Raises:
        FrameEncodeError: If cv2.imencode fails
    """
    try:
        ok, encoded = cv2.imencode(
            ".jpg",
            frame,
            [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
        )
    except cv2.error as e:
        raise FrameEncodeError(f"JPEG encode failed: {e}")

    if not ok:
        raise FrameEncodeError("JPEG encode failed: cv2.imencode returned False")

    return base64.b64encode(encoded.tobytes()).decode("ascii")


def decode_jpeg_b64(payload: str) -> np.ndarray:
    """
    Decode base64 JPEG text back to a BGR frame.

    Used for diagnostics and by the test suite.

    Raises:
        FrameEncodeError: If decoding fails
    """
    try:
        image_bytes = base64.b64decode(payload)
    except ValueError as e:
        raise FrameEncodeError(f"Base64 decode failed: {e}")

    nparr = np.frombuffer(image_bytes, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise FrameEncodeError("cv2.imdecode returned None")
    return bgr
