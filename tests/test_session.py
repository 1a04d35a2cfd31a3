"""
Session Tests
=============

Tests for the AnnotationSession pipeline: receive, measure, adapt rate,
update readouts and render.
"""

import asyncio

import pytest

from annotator_client.config import Settings
from annotator_client.control.latency import LatencyTracker
from annotator_client.control.rate import RateController
from annotator_client.errors import AcquisitionError
from annotator_client.models.annotation import Annotation, ReceivedAnnotation
from annotator_client.models.state import RateState
from annotator_client.overlay.renderer import AnnotationOverlay
from annotator_client.overlay.transform import Rect
from annotator_client.session import AnnotationSession, build_session
from annotator_client.transport.connection import ConnectionManager

from conftest import FakeConnector, FakeDisplay, FakeSource, RecordingStatusSink, wait_until


URL = "ws://annotator.test:5000"


def _session(
    connector=None,
    source_factory=None,
    status_sink=None,
    display=None,
    **kwargs,
) -> AnnotationSession:
    connection = ConnectionManager(
        reconnect_delay=kwargs.pop("reconnect_delay", 0.01),
        max_reconnect_attempts=kwargs.pop("max_reconnect_attempts", 10),
        connector=connector or FakeConnector(),
    )
    return AnnotationSession(
        url=URL,
        connection=connection,
        tracker=LatencyTracker(),
        rate_controller=RateController(),
        overlay=AnnotationOverlay(display or FakeDisplay()),
        status_sink=status_sink or RecordingStatusSink(),
        source_factory=source_factory or (lambda: FakeSource(None)),
        **kwargs,
    )


class TestHandle:
    """Tests for per-annotation processing."""

    def test_pipeline_updates_everything(self, sample_annotation_message, status_sink):
        display = FakeDisplay()
        session = _session(status_sink=status_sink, display=display)
        session.tracker.mark_sent(10.0)

        session.handle(
            ReceivedAnnotation(
                annotation=Annotation.model_validate(sample_annotation_message),
                received_at=10.12,
            )
        )

        assert session.tracker.count == 1
        assert session.rate_controller.state == RateState.LOW
        assert status_sink.orientation == ["frontal"]
        assert status_sink.advisory == [("Move closer", "Face distance OK")]
        assert status_sink.latency == ["Last=120.000 ms, Avg=120.000 ms"]
        assert status_sink.bounding_box == ["x: 100, y: 50, width: 40, height: 20"]
        assert session.overlay.last_rect == Rect(50, 25, 20, 10)
        assert len(display.presented) == 1
        assert session.handled_count == 1

    def test_reply_before_send_still_renders(self, status_sink):
        session = _session(status_sink=status_sink)

        session.handle(
            ReceivedAnnotation(annotation=Annotation(x=1, y=2, w=3, h=4), received_at=1.0)
        )

        assert session.tracker.count == 0
        assert status_sink.latency == []
        assert status_sink.orientation == ["N/A"]
        assert status_sink.advisory == [("N/A", "N/A")]
        assert session.rate_controller.state == RateState.FULL
        assert session.overlay.rendered_count == 1

    def test_handler_errors_are_contained(self):
        class BrokenSink(RecordingStatusSink):
            def set_orientation(self, text):
                raise RuntimeError("widget gone")

        session = _session(status_sink=BrokenSink())
        session.handle(
            ReceivedAnnotation(annotation=Annotation(x=1, y=2, w=3, h=4), received_at=1.0)
        )

        assert session.handler_errors == 1
        assert session.handled_count == 0


class TestLifecycle:
    """Tests for start/stop and failure handling."""

    @pytest.mark.asyncio
    async def test_round_trip(self, camera_frame, sample_annotation_message, status_sink):
        connector = FakeConnector()
        source = FakeSource(camera_frame)
        session = _session(
            connector=connector,
            source_factory=lambda: source,
            status_sink=status_sink,
        )

        await session.start()
        assert session.running
        await wait_until(lambda: session.capturing and connector.sockets)
        await wait_until(lambda: connector.socket.sent)

        connector.socket.feed(sample_annotation_message)
        await wait_until(lambda: session.handled_count == 1)

        assert session.tracker.count == 1
        assert status_sink.latency[0].startswith("Last=")
        assert status_sink.orientation == ["frontal"]

        await session.stop()
        assert source.released
        assert not session.capturing
        assert session.connection.metrics.reconnect_count == 0

    @pytest.mark.asyncio
    async def test_acquisition_failure_keeps_connection(self):
        def refuse_camera():
            raise AcquisitionError("Cannot open camera 0")

        connector = FakeConnector()
        session = _session(connector=connector, source_factory=refuse_camera)

        await session.start()
        await wait_until(lambda: session.connection.connected)

        assert session.capture_error == "Cannot open camera 0"
        assert not session.capturing
        assert session.scheduler is None
        await session.stop()

    @pytest.mark.asyncio
    async def test_resubscribe_is_bounded(self):
        connector = FakeConnector(refuse=True)
        session = _session(
            connector=connector,
            max_reconnect_attempts=0,
            resubscribe_delay=0.01,
            max_resubscribe_attempts=2,
        )

        await session.start()
        await wait_until(
            lambda: session.resubscribe_attempts == 2
            and len(connector.calls) == 3
            and session.connection.exhausted
        )
        await asyncio.sleep(0.05)

        assert len(connector.calls) == 3
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_does_not_resubscribe(self):
        connector = FakeConnector()
        session = _session(connector=connector, resubscribe_delay=0.01)

        await session.start()
        await wait_until(lambda: session.connection.connected)
        await session.stop()
        await asyncio.sleep(0.05)

        assert session.resubscribe_attempts == 0
        assert len(connector.calls) == 1

    @pytest.mark.asyncio
    async def test_metrics_shape(self):
        session = _session()
        await session.start()
        metrics = session.get_metrics()
        await session.stop()

        assert metrics["running"] is True
        assert "ticks" in metrics["capture"]
        assert metrics["rate"]["fps"] == 30
        assert "state" in metrics["connection"]


class TestBuildSession:
    """Tests for wiring from configuration."""

    def test_build_from_settings(self):
        settings = Settings.model_validate(
            {
                "service": {"url": "ws://example.test:9000", "max_reconnect_attempts": 3},
                "rate": {"high_latency_ms": 200.0, "moderate_latency_ms": 80.0},
                "overlay": {"display_width": 800, "display_height": 600},
            }
        )

        session = build_session(settings)

        assert session.url == "ws://example.test:9000"
        assert session.connection.policy.max_attempts == 3
        assert session.rate_controller.thresholds.high_latency_ms == 200.0
        assert session.display.display_size == (800, 600)
        assert session.max_resubscribe_attempts == 5
