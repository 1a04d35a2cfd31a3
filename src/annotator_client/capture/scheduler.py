"""
Frame Capture Scheduler
=======================

Periodic capture, downsample, encode and transmit loop.

Each tick:
    1. Read the current frame from the video source
    2. Skip silently if the source is not ready (no frame, zero size)
    3. Downsample to the fixed target width, preserving aspect ratio
    4. Encode as base64 JPEG at the fixed quality
    5. Stamp the send instant on the LatencyTracker
    6. Hand {"frame": <b64>} to the ConnectionManager

Timing:
    The period is read from the RateController on every tick, so a rate
    change made after a round trip applies from the next tick. Capture
    and encoding run in a worker thread to keep the event loop free.
"""

import asyncio
import logging
import time
from typing import Optional, Tuple

from annotator_client.capture.encoder import (
    JPEG_QUALITY,
    TARGET_WIDTH,
    downsample,
    encode_jpeg_b64,
)
from annotator_client.capture.source import VideoSource
from annotator_client.control.latency import LatencyTracker
from annotator_client.control.rate import RateController
from annotator_client.errors import FrameEncodeError
from annotator_client.models.frame import OutboundFrame
from annotator_client.transport.connection import ConnectionManager


logger = logging.getLogger(__name__)


class SchedulerMetrics:
    """Metrics for FrameCaptureScheduler observability."""

    __slots__ = (
        "ticks",
        "frames_sent",
        "frames_skipped",
        "send_failures",
        "encode_errors",
    )

    def __init__(self) -> None:
        self.ticks: int = 0
        self.frames_sent: int = 0
        self.frames_skipped: int = 0
        self.send_failures: int = 0
        self.encode_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "ticks": self.ticks,
            "frames_sent": self.frames_sent,
            "frames_skipped": self.frames_skipped,
            "send_failures": self.send_failures,
            "encode_errors": self.encode_errors,
        }


class FrameCaptureScheduler:
    """
    Rate-controlled capture loop.

    Attributes:
        target_width: Downsampled frame width in pixels
        jpeg_quality: JPEG quality factor (1-100)
        metrics: Operational metrics

    Example:
        scheduler = FrameCaptureScheduler(source, connection, tracker, controller)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        source: VideoSource,
        connection: ConnectionManager,
        tracker: LatencyTracker,
        rate_controller: RateController,
        target_width: int = TARGET_WIDTH,
        jpeg_quality: int = JPEG_QUALITY,
    ) -> None:
        """
        Initialize capture scheduler.

        Args:
            source: Live video source
            connection: Transport used to send encoded frames
            tracker: Receives the send instant of every frame
            rate_controller: Supplies the tick period
            target_width: Fixed downsample width
            jpeg_quality: JPEG quality factor
        """
        if target_width < 1:
            raise ValueError("target_width must be >= 1")
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [1, 100]")

        self.target_width = target_width
        self.jpeg_quality = jpeg_quality
        self.metrics = SchedulerMetrics()

        self._source = source
        self._connection = connection
        self._tracker = tracker
        self._rate = rate_controller
        self._task: Optional[asyncio.Task] = None
        self._surface_size: Tuple[int, int] = (0, 0)

        logger.info(
            f"FrameCaptureScheduler initialized: width={target_width}px, "
            f"quality={jpeg_quality}"
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def surface_size(self) -> Tuple[int, int]:
        """(width, height) of the most recent downsampled frame."""
        return self._surface_size

    def start(self) -> None:
        """Start the periodic capture task on the running loop."""
        if self.running:
            logger.warning("FrameCaptureScheduler already running")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(),
            name="frame_capture",
        )

    async def stop(self) -> None:
        """Cancel the capture task. Frames in flight are abandoned."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info(f"Frame capture started at {self._rate.fps} fps")
        try:
            while True:
                started = loop.time()
                await self.tick()
                elapsed = loop.time() - started
                await asyncio.sleep(max(0.0, self._rate.period - elapsed))
        except asyncio.CancelledError:
            logger.info("Frame capture stopped")
            raise

    async def tick(self) -> bool:
        """
        Run one capture cycle.

        Returns:
            True if a frame was written to the transport.
        """
        self.metrics.ticks += 1

        try:
            captured = await asyncio.to_thread(self._capture_and_encode)
        except FrameEncodeError as e:
            self.metrics.encode_errors += 1
            logger.error(f"Frame encode error: {e}")
            return False

        if captured is None:
            self.metrics.frames_skipped += 1
            logger.debug("Video source not ready, tick skipped")
            return False

        payload, (width, height) = captured
        frame = OutboundFrame(
            payload=payload,
            sent_at=time.perf_counter(),
            width=width,
            height=height,
        )
        self._tracker.mark_sent(frame.sent_at)

        if await self._connection.send(frame.to_message()):
            self.metrics.frames_sent += 1
            return True

        self.metrics.send_failures += 1
        return False

    def _capture_and_encode(self) -> Optional[Tuple[str, Tuple[int, int]]]:
        """Read, downsample and encode one frame. None when not ready."""
        frame = self._source.read()
        if frame is None or frame.ndim < 2:
            return None

        height, width = frame.shape[:2]
        if width == 0 or height == 0:
            return None

        small = downsample(frame, self.target_width)
        # Source resolution may change between ticks
        self._surface_size = (int(small.shape[1]), int(small.shape[0]))
        return encode_jpeg_b64(small, self.jpeg_quality), self._surface_size
