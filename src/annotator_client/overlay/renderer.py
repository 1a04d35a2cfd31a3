"""
Annotation Overlay
==================

Renders received bounding boxes onto an overlay surface sized to the
displayed video.

On each annotation:
    1. Resize the overlay surface to the displayed size and clear it
    2. Compute the source-to-display scale transform
    3. Scale the annotation rectangle
    4. Stroke the outline in the annotation colour, fixed line width
    5. Present the surface to the display collaborator

Guards:
    - A missing annotation draws nothing and leaves the surface untouched
    - Zero native or displayed dimensions skip the transform
"""

import logging
from typing import Optional

import cv2
import numpy as np

from annotator_client.models.annotation import Annotation
from annotator_client.overlay.display import DisplaySurface
from annotator_client.overlay.transform import Rect, ScaleTransform


logger = logging.getLogger(__name__)


LINE_WIDTH = 2


class AnnotationOverlay:
    """
    Owner of the overlay drawing surface.

    The surface is a BGRA uint8 array of the displayed size. Drawn pixels
    carry full alpha; everything else is transparent when composited over
    the video, whatever its colour.

    Attributes:
        line_width: Rectangle outline thickness in pixels
        rendered_count: Annotations drawn
        skipped_count: Annotations skipped by the dimension guards
    """

    def __init__(self, display: DisplaySurface, line_width: int = LINE_WIDTH) -> None:
        if line_width < 1:
            raise ValueError("line_width must be >= 1")

        self.line_width = line_width
        self.rendered_count: int = 0
        self.skipped_count: int = 0

        self._display = display
        self._surface: np.ndarray = np.zeros((0, 0, 4), dtype=np.uint8)
        self._last_rect: Optional[Rect] = None

    @property
    def surface(self) -> np.ndarray:
        return self._surface

    @property
    def last_rect(self) -> Optional[Rect]:
        """Most recently drawn rectangle in display coordinates."""
        return self._last_rect

    def render(self, annotation: Optional[Annotation]) -> Optional[Rect]:
        """
        Draw an annotation's bounding box.

        Args:
            annotation: Annotation to draw, or None

        Returns:
            The rectangle as drawn in display coordinates, or None when
            nothing was drawn.
        """
        if annotation is None:
            return None

        display_w, display_h = self._display.display_size
        if display_w <= 0 or display_h <= 0:
            self.skipped_count += 1
            logger.debug("Display has zero size, overlay skipped")
            return None

        self._reset_surface(display_w, display_h)

        transform = ScaleTransform.between(
            self._display.native_size,
            (display_w, display_h),
        )
        if transform is None:
            self.skipped_count += 1
            logger.debug("Video has zero native size, overlay cleared only")
            self._display.present_overlay(self._surface)
            return None

        rect = transform.apply(
            Rect(x=annotation.x, y=annotation.y, w=annotation.w, h=annotation.h)
        )
        r, g, b = annotation.rgb
        cv2.rectangle(
            self._surface,
            rect.top_left,
            rect.bottom_right,
            (b, g, r, 255),
            self.line_width,
        )

        self._display.present_overlay(self._surface)
        self._last_rect = rect
        self.rendered_count += 1
        return rect

    def _reset_surface(self, width: int, height: int) -> None:
        if self._surface.shape[:2] != (height, width):
            self._surface = np.zeros((height, width, 4), dtype=np.uint8)
        else:
            self._surface.fill(0)
