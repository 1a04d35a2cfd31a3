"""
Annotation Message Schema
=========================

Pydantic model for annotation messages received from the remote service.

Input Contract (from the annotation service):
    {
        "x": 100, "y": 50, "w": 40, "h": 20,
        "colorRectangle": [0, 255, 0],
        "orientation": "frontal",
        "text4User": "Move closer",
        "textFacDis": "Face distance OK"
    }

The rectangle is required and is expressed in source-frame pixels.
Every other field is optional; missing text fields are rendered with the
UNAVAILABLE marker and a missing or malformed colour falls back to DEFAULT_COLOR.

Example:
    from annotator_client.models.annotation import Annotation

    annotation = Annotation.model_validate_json(raw)
    print(annotation.orientation_text)
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNAVAILABLE = "N/A"

DEFAULT_COLOR: Tuple[int, int, int] = (0, 255, 0)


class Annotation(BaseModel):
    """
    Bounding box annotation for a single transmitted frame.

    Attributes:
        x: Left edge in source-frame pixels
        y: Top edge in source-frame pixels
        w: Width in source-frame pixels
        h: Height in source-frame pixels
        color_rectangle: RGB stroke colour triple
        orientation: Subject orientation label
        text4user: Advisory text for the user
        text_fac_dis: Advisory text about face distance
    """

    model_config = ConfigDict(populate_by_name=True)

    x: float = Field(..., description="Left edge (source pixels)")
    y: float = Field(..., description="Top edge (source pixels)")
    w: float = Field(..., description="Width (source pixels)")
    h: float = Field(..., description="Height (source pixels)")

    color_rectangle: Optional[List[float]] = Field(
        default=None,
        alias="colorRectangle",
        description="RGB colour triple for the rectangle outline",
    )
    orientation: Optional[str] = Field(default=None)
    text4user: Optional[str] = Field(default=None, alias="text4User")
    text_fac_dis: Optional[str] = Field(default=None, alias="textFacDis")

    @field_validator("color_rectangle", mode="before")
    @classmethod
    def _drop_malformed_colour(cls, value: Any) -> Optional[List[float]]:
        """A colour that is not a numeric triple degrades to DEFAULT_COLOR."""
        if value is None:
            return None
        if not isinstance(value, (list, tuple)) or len(value) != 3:
            return None
        if not all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in value):
            return None
        return list(value)

    @property
    def rgb(self) -> Tuple[int, int, int]:
        """Stroke colour as an integer RGB triple."""
        if self.color_rectangle is None:
            return DEFAULT_COLOR
        r, g, b = (int(max(0, min(255, c))) for c in self.color_rectangle)
        return (r, g, b)

    @property
    def orientation_text(self) -> str:
        return self.orientation or UNAVAILABLE

    @property
    def text4user_text(self) -> str:
        return self.text4user or UNAVAILABLE

    @property
    def text_fac_dis_text(self) -> str:
        return self.text_fac_dis or UNAVAILABLE


@dataclass(frozen=True, slots=True)
class ReceivedAnnotation:
    """
    Annotation stamped with its arrival instant.

    Attributes:
        annotation: Validated annotation payload
        received_at: time.perf_counter() value when the message arrived
    """

    annotation: Annotation
    received_at: float
