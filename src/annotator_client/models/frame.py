"""
Outbound Frame Model
====================

Wire representation of a captured frame on its way to the annotation
service. Created per capture tick and discarded after transmission.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OutboundFrame:
    """
    Encoded frame ready for transmission.

    Attributes:
        payload: Base64-encoded JPEG data
        sent_at: time.perf_counter() value taken immediately before sending
        width: Downsampled width in pixels
        height: Downsampled height in pixels
    """

    payload: str
    sent_at: float
    width: int
    height: int

    def to_message(self) -> dict:
        """Outbound message body. Only the frame field is transmitted."""
        return {"frame": self.payload}

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"OutboundFrame({self.width}x{self.height}, "
            f"bytes_b64={len(self.payload)}, "
            f"sent_at={self.sent_at:.3f})"
        )
