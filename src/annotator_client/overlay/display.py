"""
Display Surface
===============

Display collaborator for the overlay renderer.

This module provides the DisplaySurface protocol (native video size,
displayed size, overlay presentation) and VideoDisplay, an OpenCV
implementation that scales the live video to a fixed displayed size and
composites the latest overlay on top.

Design Rules:
    - Native size always comes from the video source
    - Displayed size is the layout size, independent of the native size
    - Window output is optional; headless runs keep only the sizes
"""

import asyncio
import logging
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from annotator_client.capture.source import VideoSource


logger = logging.getLogger(__name__)


class DisplaySurface(Protocol):
    """Protocol for the surface the overlay is rendered onto."""

    @property
    def native_size(self) -> Tuple[int, int]:
        """(width, height) of the source video."""
        ...

    @property
    def display_size(self) -> Tuple[int, int]:
        """(width, height) the video is displayed at."""
        ...

    def present_overlay(self, overlay: np.ndarray) -> None:
        """Accept a freshly drawn BGRA overlay of display_size."""
        ...


class VideoDisplay:
    """
    OpenCV window showing the video with the annotation overlay.

    Attributes:
        window_name: cv2 window title
        show_window: Whether frames are drawn to a window
        refresh_hz: Window refresh rate
    """

    def __init__(
        self,
        source: Optional[VideoSource] = None,
        display_size: Tuple[int, int] = (640, 480),
        show_window: bool = False,
        window_name: str = "Annotator",
        refresh_hz: float = 30.0,
    ) -> None:
        if refresh_hz <= 0:
            raise ValueError("refresh_hz must be positive")

        self.show_window = show_window
        self.window_name = window_name
        self.refresh_hz = refresh_hz

        self._source = source
        self._display_size = display_size
        self._overlay: Optional[np.ndarray] = None
        self._task: Optional[asyncio.Task] = None
        self._window_open: bool = False

    @property
    def native_size(self) -> Tuple[int, int]:
        if self._source is None:
            return (0, 0)
        return self._source.native_size

    @property
    def display_size(self) -> Tuple[int, int]:
        return self._display_size

    def attach_source(self, source: VideoSource) -> None:
        """Use a source acquired after construction."""
        self._source = source

    def resize(self, width: int, height: int) -> None:
        """Change the displayed size (layout change)."""
        self._display_size = (width, height)

    def present_overlay(self, overlay: np.ndarray) -> None:
        self._overlay = overlay

    def compose(self) -> Optional[np.ndarray]:
        """
        Current video frame at display size with the overlay applied.

        Returns None when no frame is available yet.
        """
        if self._source is None:
            return None
        frame = self._source.last_frame
        width, height = self._display_size
        if frame is None or width <= 0 or height <= 0:
            return None

        image = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)
        overlay = self._overlay
        if overlay is not None and overlay.shape == (height, width, 4):
            mask = overlay[:, :, 3] > 0
            image[mask] = overlay[:, :, :3][mask]
        return image

    def start(self) -> None:
        """Start the window refresh task if window output is enabled."""
        if not self.show_window or self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(),
            name="video_display",
        )

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self._window_open:
            cv2.destroyWindow(self.window_name)
            self._window_open = False

    async def _run(self) -> None:
        logger.info(f"Display window '{self.window_name}' opened at {self._display_size}")
        period = 1.0 / self.refresh_hz
        while True:
            image = self.compose()
            if image is not None:
                cv2.imshow(self.window_name, image)
                self._window_open = True
            cv2.waitKey(1)
            await asyncio.sleep(period)
