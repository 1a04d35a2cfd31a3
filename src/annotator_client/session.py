"""
Annotation Session
==================

Wiring of the capture, transport, control and overlay components for one
video source and one annotation service.

Flow:
    FrameCaptureScheduler -> ConnectionManager.send -> (service)
    ConnectionManager receive -> broadcast -> AnnotationSession.handle
        -> LatencyTracker.record -> RateController.recompute
        -> StatusSink readouts
        -> AnnotationOverlay.render

Resubscribe Policy:
    Independent of the transport reconnect policy. When the message stream
    ends while the session is running (the transport gave up), the session
    waits a fixed delay and connects again, a bounded number of times per
    session lifetime.

Failure Handling:
    - Camera acquisition failure is reported once; capture never starts,
      the connection keeps running
    - Errors while handling an annotation are logged and counted, the
      receive loop continues
"""

import asyncio
import functools
import logging
from typing import Callable, Optional

from annotator_client.capture.encoder import JPEG_QUALITY, TARGET_WIDTH
from annotator_client.capture.scheduler import FrameCaptureScheduler
from annotator_client.capture.source import VideoSource, open_camera
from annotator_client.config import Settings
from annotator_client.control.latency import LatencyTracker
from annotator_client.control.rate import RateController, RateThresholds
from annotator_client.errors import AcquisitionError
from annotator_client.models.annotation import Annotation, ReceivedAnnotation
from annotator_client.overlay.display import VideoDisplay
from annotator_client.overlay.renderer import AnnotationOverlay
from annotator_client.status import (
    LoggingStatusSink,
    StatusSink,
    format_bounding_box_readout,
    format_latency_readout,
)
from annotator_client.transport.broadcast import Subscription
from annotator_client.transport.connection import ConnectionManager


logger = logging.getLogger(__name__)


class AnnotationSession:
    """
    One running client: capture loop, transport and overlay.

    Attributes:
        url: Annotation service endpoint
        connection: Transport to the service
        tracker: Round-trip latency history
        rate_controller: Current capture rate
        overlay: Bounding box renderer
        status_sink: Readout target
        capture_error: Acquisition failure message, if capture never started
        handled_count: Annotations handled
        handler_errors: Annotations whose handling raised

    Example:
        session = build_session(settings)
        await session.start()
        ...
        await session.stop()
    """

    def __init__(
        self,
        url: str,
        connection: ConnectionManager,
        tracker: LatencyTracker,
        rate_controller: RateController,
        overlay: AnnotationOverlay,
        status_sink: StatusSink,
        source_factory: Callable[[], VideoSource],
        display: Optional[VideoDisplay] = None,
        target_width: int = TARGET_WIDTH,
        jpeg_quality: int = JPEG_QUALITY,
        resubscribe_delay: float = 2.0,
        max_resubscribe_attempts: int = 5,
    ) -> None:
        self.url = url
        self.connection = connection
        self.tracker = tracker
        self.rate_controller = rate_controller
        self.overlay = overlay
        self.status_sink = status_sink
        self.display = display
        self.target_width = target_width
        self.jpeg_quality = jpeg_quality
        self.resubscribe_delay = resubscribe_delay
        self.max_resubscribe_attempts = max_resubscribe_attempts

        self.capture_error: Optional[str] = None
        self.handled_count: int = 0
        self.handler_errors: int = 0

        self._source_factory = source_factory
        self._source: Optional[VideoSource] = None
        self._scheduler: Optional[FrameCaptureScheduler] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._resubscribe_task: Optional[asyncio.Task] = None
        self._resubscribe_attempts: int = 0
        self._running: bool = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def scheduler(self) -> Optional[FrameCaptureScheduler]:
        return self._scheduler

    @property
    def capturing(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def resubscribe_attempts(self) -> int:
        return self._resubscribe_attempts

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Connect, subscribe, acquire the camera and start capturing."""
        if self._running:
            logger.warning("AnnotationSession already running")
            return
        self._running = True
        logger.info(f"Starting annotation session for {self.url}")

        self._connect_and_subscribe()
        await self._start_capture()

        if self.display is not None:
            self.display.start()

    async def stop(self) -> None:
        """
        Tear down capture, display and transport.

        Frames sent without a reply yet are abandoned.
        """
        logger.info("Stopping annotation session...")
        self._running = False

        task = self._resubscribe_task
        self._resubscribe_task = None
        if task is not None and not task.done():
            task.cancel()

        if self._scheduler is not None:
            await self._scheduler.stop()
        if self.display is not None:
            await self.display.stop()

        # Completes the message stream, which ends the receive loop
        await self.connection.disconnect()

        task = self._receive_task
        self._receive_task = None
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning("Receive loop did not finish in time, cancelled")

        if self._source is not None:
            self._source.release()
            self._source = None

        logger.info("Annotation session stopped")

    async def _start_capture(self) -> None:
        try:
            source = await asyncio.to_thread(self._source_factory)
        except AcquisitionError as e:
            self.capture_error = str(e)
            logger.error(f"Error accessing video stream: {e}")
            return

        self._source = source
        if self.display is not None:
            self.display.attach_source(source)

        self._scheduler = FrameCaptureScheduler(
            source=source,
            connection=self.connection,
            tracker=self.tracker,
            rate_controller=self.rate_controller,
            target_width=self.target_width,
            jpeg_quality=self.jpeg_quality,
        )
        self._scheduler.start()

    # -------------------------------------------------------------------------
    # Receive path
    # -------------------------------------------------------------------------

    def _connect_and_subscribe(self) -> None:
        self.connection.connect(self.url)
        subscription = self.connection.messages()
        self._receive_task = asyncio.get_running_loop().create_task(
            self._receive_loop(subscription),
            name="annotation_receive",
        )

    async def _receive_loop(self, subscription: Subscription[ReceivedAnnotation]) -> None:
        async for received in subscription:
            self.handle(received)

        if self._running:
            self._on_stream_closed()

    def handle(self, received: ReceivedAnnotation) -> None:
        """Process one received annotation. Never raises."""
        try:
            self._handle(received)
        except Exception as e:
            self.handler_errors += 1
            logger.error(f"Annotation handling failed: {e}")

    def _handle(self, received: ReceivedAnnotation) -> None:
        annotation = received.annotation

        sample_ms = self.tracker.record(received.received_at)
        if sample_ms is not None:
            self.rate_controller.recompute(self.tracker)

        self._update_status(annotation)
        self.overlay.render(annotation)
        self.handled_count += 1

    def _update_status(self, annotation: Annotation) -> None:
        sink = self.status_sink
        sink.set_orientation(annotation.orientation_text)
        sink.set_advisory(annotation.text4user_text, annotation.text_fac_dis_text)

        if self.tracker.count:
            sink.set_latency_readout(
                format_latency_readout(self.tracker.last, self.tracker.average())
            )
        sink.set_bounding_box_readout(format_bounding_box_readout(annotation))

    # -------------------------------------------------------------------------
    # Resubscribe policy
    # -------------------------------------------------------------------------

    def _on_stream_closed(self) -> None:
        if self._resubscribe_attempts >= self.max_resubscribe_attempts:
            logger.error(
                "Max resubscribe attempts reached. "
                "Could not reconnect to annotation service."
            )
            return

        self._resubscribe_attempts += 1
        logger.warning(
            f"Annotation stream closed, reconnecting in {self.resubscribe_delay:.1f}s "
            f"({self._resubscribe_attempts}/{self.max_resubscribe_attempts})"
        )
        self._resubscribe_task = asyncio.get_running_loop().create_task(
            self._resubscribe_after_delay(),
            name="annotation_resubscribe",
        )

    async def _resubscribe_after_delay(self) -> None:
        await asyncio.sleep(self.resubscribe_delay)
        if self._running:
            self._connect_and_subscribe()

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_metrics(self) -> dict:
        """Aggregate metrics from every component."""
        return {
            "running": self._running,
            "capturing": self.capturing,
            "capture_error": self.capture_error,
            "annotations_handled": self.handled_count,
            "handler_errors": self.handler_errors,
            "resubscribe_attempts": self._resubscribe_attempts,
            "overlay_rendered": self.overlay.rendered_count,
            "overlay_skipped": self.overlay.skipped_count,
            "connection": self.connection.get_metrics(),
            "latency": self.tracker.get_metrics(),
            "rate": self.rate_controller.get_metrics(),
            "capture": self._scheduler.metrics.to_dict() if self._scheduler else {},
        }


def build_session(settings: Settings) -> AnnotationSession:
    """
    Construct a session from configuration.

    Uses the OpenCV camera for acquisition and a VideoDisplay (window
    optional) as the overlay display collaborator.
    """
    connection = ConnectionManager(
        reconnect_delay=settings.service.reconnect_delay_seconds,
        max_reconnect_attempts=settings.service.max_reconnect_attempts,
        ping_interval=settings.service.ping_interval_seconds,
        ping_timeout=settings.service.ping_timeout_seconds,
        close_timeout=settings.service.close_timeout_seconds,
        subscriber_queue_size=settings.service.subscriber_queue_size,
    )
    tracker = LatencyTracker(max_samples=settings.rate.max_latency_samples)
    rate_controller = RateController(
        thresholds=RateThresholds(
            high_latency_ms=settings.rate.high_latency_ms,
            moderate_latency_ms=settings.rate.moderate_latency_ms,
        )
    )
    display = VideoDisplay(
        display_size=(settings.overlay.display_width, settings.overlay.display_height),
        show_window=settings.overlay.show_window,
        window_name=settings.overlay.window_name,
    )
    overlay = AnnotationOverlay(display, line_width=settings.overlay.line_width)

    source_factory = functools.partial(
        open_camera,
        settings.capture.camera_index,
        settings.capture.capture_width,
        settings.capture.capture_height,
    )

    return AnnotationSession(
        url=settings.service.url,
        connection=connection,
        tracker=tracker,
        rate_controller=rate_controller,
        overlay=overlay,
        status_sink=LoggingStatusSink(),
        source_factory=source_factory,
        display=display,
        target_width=settings.capture.target_width,
        jpeg_quality=settings.capture.jpeg_quality,
        resubscribe_delay=settings.session.resubscribe_delay_seconds,
        max_resubscribe_attempts=settings.session.max_resubscribe_attempts,
    )
