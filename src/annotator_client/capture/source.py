"""
Video Source
============

Acquisition of the live video feed.

This module provides the VideoSource protocol consumed by the capture
scheduler and the overlay, and CameraSource, an OpenCV webcam
implementation.

Design Rules:
    - A source that is not ready reports zero dimensions and no frame
    - Acquisition failure raises AcquisitionError once, at open time
    - read() never raises; a failed read returns None
"""

import logging
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from annotator_client.errors import AcquisitionError


logger = logging.getLogger(__name__)


class VideoSource(Protocol):
    """
    Protocol for live video sources.

    Frames are BGR numpy arrays, matching cv2.VideoCapture output.
    """

    def read(self) -> Optional[np.ndarray]:
        """Return the current frame, or None if unavailable."""
        ...

    @property
    def native_size(self) -> Tuple[int, int]:
        """(width, height) of the current frame, (0, 0) when not ready."""
        ...

    @property
    def last_frame(self) -> Optional[np.ndarray]:
        """Most recently read frame, for display."""
        ...

    def release(self) -> None:
        """Release the underlying device."""
        ...


class CameraSource:
    """
    OpenCV camera source.

    Attributes:
        index: Camera device index
        frames_read: Successful reads
        read_failures: Reads that returned no frame
    """

    def __init__(self, capture: "cv2.VideoCapture", index: int = 0) -> None:
        self.index = index
        self._capture = capture
        self._size: Tuple[int, int] = (0, 0)
        self._last_frame: Optional[np.ndarray] = None
        self.frames_read: int = 0
        self.read_failures: int = 0

    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            self.read_failures += 1
            if self.read_failures == 1:
                logger.warning(f"Camera {self.index} read failed")
            return None

        self.frames_read += 1
        self._size = (int(frame.shape[1]), int(frame.shape[0]))
        self._last_frame = frame
        return frame

    @property
    def native_size(self) -> Tuple[int, int]:
        return self._size

    @property
    def last_frame(self) -> Optional[np.ndarray]:
        """Most recently read frame (for display)."""
        return self._last_frame

    def release(self) -> None:
        self._capture.release()
        self._size = (0, 0)
        logger.info(f"Camera {self.index} released")


def open_camera(
    index: int = 0,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> CameraSource:
    """
    Acquire a camera device.

    Args:
        index: Device index for cv2.VideoCapture
        width: Requested capture width (driver may ignore)
        height: Requested capture height (driver may ignore)

    Returns:
        Open CameraSource

    Raises:
        AcquisitionError: If the device cannot be opened
    """
    capture = cv2.VideoCapture(index)
    if not capture.isOpened():
        capture.release()
        raise AcquisitionError(f"Cannot open camera {index}")

    if width:
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    if height:
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    logger.info(f"Camera {index} opened")
    return CameraSource(capture, index=index)
