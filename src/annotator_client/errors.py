"""
Error Types
===========

Exception hierarchy for the annotator client.

Taxonomy:
    - TransportError: Open failure, message failure, unexpected close.
      Recovered by the ConnectionManager reconnect policy.
    - AcquisitionError: Camera unavailable or denied. Fatal to capture only.
    - FrameEncodeError: A captured frame could not be downsampled or encoded.
    - EmptyHistoryError: Latency average requested before any round trip.

Rules:
    - Public operations convert failures into logged outcomes or state
      transitions; these exceptions are raised only inside component
      boundaries (and by LatencyTracker.average, whose callers guard).
"""


class AnnotatorError(Exception):
    """Base class for annotator client errors."""
    pass


class TransportError(AnnotatorError):
    """Raised when the WebSocket session fails to open or breaks."""
    pass


class AcquisitionError(AnnotatorError):
    """Raised when the video source cannot be acquired."""
    pass


class FrameEncodeError(AnnotatorError):
    """Raised when frame downsampling or JPEG encoding fails."""
    pass


class EmptyHistoryError(AnnotatorError):
    """Raised when an average is requested over zero latency samples."""
    pass
