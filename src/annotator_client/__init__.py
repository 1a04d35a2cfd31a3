"""
Annotator Client
================

Real-time video annotation client with latency-driven frame rate.

This package captures a live video feed, periodically downsamples and
JPEG-encodes frames, sends them to a remote annotation service over a
persistent WebSocket, and draws the bounding boxes it receives back as an
overlay. The capture rate adapts to the average round-trip latency.

Components:
    - transport: WebSocket ConnectionManager with bounded reconnect
    - control: LatencyTracker and RateController
    - capture: Video source, frame encoder, FrameCaptureScheduler
    - overlay: Scale transform and AnnotationOverlay renderer
    - session: AnnotationSession wiring the components together

Example:
    from annotator_client.config import settings
    from annotator_client.session import build_session

    session = build_session(settings)
    await session.start()

Note:
    The FastAPI host in main.py is the usual entry point:
    python -m annotator_client.main
"""

__version__ = "0.1.0"
__author__ = "Annotator Client Project"

__all__ = [
    "__version__",
]
