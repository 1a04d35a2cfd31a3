"""
Data Models
===========

Typed models for the annotator client.

Models:
    Inbound:
        - Annotation: Schema for messages from the annotation service
        - ReceivedAnnotation: Annotation plus arrival instant

    Outbound:
        - OutboundFrame: Encoded frame and its send instant

    State:
        - ConnectionState: Transport lifecycle
        - RateState: Target capture rate (15 / 20 / 30 fps)
"""

from annotator_client.models.annotation import (
    DEFAULT_COLOR,
    UNAVAILABLE,
    Annotation,
    ReceivedAnnotation,
)
from annotator_client.models.frame import OutboundFrame
from annotator_client.models.state import ConnectionState, RateState

__all__ = [
    # Inbound
    "Annotation",
    "ReceivedAnnotation",
    "UNAVAILABLE",
    "DEFAULT_COLOR",
    # Outbound
    "OutboundFrame",
    # State
    "ConnectionState",
    "RateState",
]
