"""
Status Readouts
===============

Human-readable status lines produced after every round trip.

The session writes to an injected StatusSink instead of looking up UI
elements. LoggingStatusSink is the default implementation: it logs each
update and keeps the latest values for the HTTP status endpoint.

Readouts:
    orientation     -> "frontal" or "N/A"
    advisory        -> text for the user, face-distance text
    latency         -> "Last=12.345 ms, Avg=20.000 ms"
    bounding box    -> "x: 100, y: 50, width: 40, height: 20"
"""

import logging
from typing import Dict, Protocol

from annotator_client.models.annotation import Annotation


logger = logging.getLogger(__name__)


class StatusSink(Protocol):
    """Capability interface for the status readouts."""

    def set_orientation(self, text: str) -> None:
        ...

    def set_advisory(self, text_for_user: str, text_face_distance: str) -> None:
        ...

    def set_latency_readout(self, text: str) -> None:
        ...

    def set_bounding_box_readout(self, text: str) -> None:
        ...


def _format_number(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def format_latency_readout(last_ms: float, average_ms: float) -> str:
    return f"Last={last_ms:.3f} ms, Avg={average_ms:.3f} ms"


def format_bounding_box_readout(annotation: Annotation) -> str:
    return (
        f"x: {_format_number(annotation.x)}, "
        f"y: {_format_number(annotation.y)}, "
        f"width: {_format_number(annotation.w)}, "
        f"height: {_format_number(annotation.h)}"
    )


class LoggingStatusSink:
    """
    StatusSink that logs updates and keeps a snapshot.

    Attributes:
        log_level: Level used for update lines
    """

    def __init__(self, log_level: int = logging.DEBUG) -> None:
        self.log_level = log_level
        self._values: Dict[str, str] = {}

    def set_orientation(self, text: str) -> None:
        self._update("orientation", text)

    def set_advisory(self, text_for_user: str, text_face_distance: str) -> None:
        self._update("text4User", text_for_user)
        self._update("textFacDis", text_face_distance)

    def set_latency_readout(self, text: str) -> None:
        self._update("latency", text)

    def set_bounding_box_readout(self, text: str) -> None:
        self._update("boundingBoxInfo", text)

    def snapshot(self) -> Dict[str, str]:
        """Latest value of every readout written so far."""
        return dict(self._values)

    def _update(self, name: str, text: str) -> None:
        self._values[name] = text
        logger.log(self.log_level, f"{name}: {text}")
