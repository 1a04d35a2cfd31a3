"""
Scale Transform
===============

Linear mapping from source-frame pixel coordinates to display-surface
pixel coordinates.

    scale_x = displayed_width  / native_width
    scale_y = displayed_height / native_height

The two axes scale independently, so a display with a different aspect
ratio than the source stretches the rectangle accordingly.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned rectangle: top-left corner plus size, in pixels."""

    x: float
    y: float
    w: float
    h: float

    @property
    def top_left(self) -> Tuple[int, int]:
        return (int(round(self.x)), int(round(self.y)))

    @property
    def bottom_right(self) -> Tuple[int, int]:
        return (int(round(self.x + self.w)), int(round(self.y + self.h)))


@dataclass(frozen=True, slots=True)
class ScaleTransform:
    """
    Per-axis scale from source space to display space.

    Attributes:
        scale_x: Horizontal factor
        scale_y: Vertical factor
    """

    scale_x: float
    scale_y: float

    @classmethod
    def between(
        cls,
        native_size: Tuple[int, int],
        display_size: Tuple[int, int],
    ) -> Optional["ScaleTransform"]:
        """
        Build the transform for a native and a displayed (width, height).

        Returns None when the native size has a zero dimension.
        """
        native_w, native_h = native_size
        display_w, display_h = display_size
        if native_w <= 0 or native_h <= 0:
            return None
        return cls(scale_x=display_w / native_w, scale_y=display_h / native_h)

    def apply(self, rect: Rect) -> Rect:
        return Rect(
            x=rect.x * self.scale_x,
            y=rect.y * self.scale_y,
            w=rect.w * self.scale_x,
            h=rect.h * self.scale_y,
        )
