"""
Capture Tests
=============

Tests for frame encoding and the rate-controlled capture scheduler.
"""

import base64
import json

import numpy as np
import pytest

from annotator_client.capture.encoder import (
    decode_jpeg_b64,
    downsample,
    downsample_size,
    encode_jpeg_b64,
)
from annotator_client.capture.scheduler import FrameCaptureScheduler
from annotator_client.control.latency import LatencyTracker
from annotator_client.control.rate import RateController
from annotator_client.errors import FrameEncodeError
from annotator_client.models.state import RateState
from annotator_client.transport.connection import ConnectionManager

from conftest import FakeSource, wait_until


class TestEncoder:
    """Tests for downsampling and JPEG encoding."""

    def test_downsample_size_keeps_aspect(self):
        assert downsample_size(640, 480) == (320, 240)
        assert downsample_size(1920, 1080) == (320, 180)

    def test_downsample_size_minimum_height(self):
        assert downsample_size(10000, 1) == (320, 1)

    def test_downsample_size_zero(self):
        with pytest.raises(FrameEncodeError):
            downsample_size(0, 480)

    def test_downsample_frame(self, camera_frame):
        small = downsample(camera_frame)
        assert small.shape == (240, 320, 3)

    def test_upsamples_small_frames(self):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        assert downsample(frame).shape == (240, 320, 3)

    def test_encode_is_base64_jpeg(self, camera_frame):
        payload = encode_jpeg_b64(downsample(camera_frame), quality=40)
        raw = base64.b64decode(payload)
        assert raw[:2] == b"\xff\xd8"
        assert decode_jpeg_b64(payload).shape == (240, 320, 3)

    def test_decode_garbage(self):
        with pytest.raises(FrameEncodeError):
            decode_jpeg_b64(base64.b64encode(b"not a jpeg").decode("ascii"))


class _RecordingConnection:
    """Minimal transport double recording sends."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.sent = []

    async def send(self, payload: dict) -> bool:
        self.sent.append(payload)
        return self.accept


def _scheduler(source, connection=None, tracker=None, controller=None):
    return FrameCaptureScheduler(
        source=source,
        connection=connection or _RecordingConnection(),
        tracker=tracker or LatencyTracker(),
        rate_controller=controller or RateController(),
    )


class TestFrameCaptureScheduler:
    """Tests for the capture loop."""

    @pytest.mark.asyncio
    async def test_tick_sends_frame_message(self, camera_frame):
        connection = _RecordingConnection()
        tracker = LatencyTracker()
        scheduler = _scheduler(FakeSource(camera_frame), connection, tracker)

        assert await scheduler.tick() is True

        assert len(connection.sent) == 1
        message = connection.sent[0]
        assert list(message) == ["frame"]
        assert decode_jpeg_b64(message["frame"]).shape[1] == 320
        assert tracker.last_sent_at is not None
        assert scheduler.surface_size == (320, 240)
        assert scheduler.metrics.frames_sent == 1

    @pytest.mark.asyncio
    async def test_source_not_ready_skips(self):
        connection = _RecordingConnection()
        tracker = LatencyTracker()
        scheduler = _scheduler(FakeSource(None), connection, tracker)

        assert await scheduler.tick() is False
        assert connection.sent == []
        assert tracker.last_sent_at is None
        assert scheduler.metrics.frames_skipped == 1

    @pytest.mark.asyncio
    async def test_zero_dimension_frame_skips(self):
        connection = _RecordingConnection()
        empty = np.zeros((0, 640, 3), dtype=np.uint8)
        scheduler = _scheduler(FakeSource(empty), connection)

        assert await scheduler.tick() is False
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_send_instant_marked_when_rejected(self, camera_frame):
        """The send instant is stamped even if the transport rejects."""
        tracker = LatencyTracker()
        scheduler = _scheduler(
            FakeSource(camera_frame), _RecordingConnection(accept=False), tracker
        )

        assert await scheduler.tick() is False
        assert tracker.last_sent_at is not None
        assert scheduler.metrics.send_failures == 1

    @pytest.mark.asyncio
    async def test_send_goes_through_real_transport(self, camera_frame, connector):
        connection = ConnectionManager(connector=connector)
        connection.connect("ws://annotator.test")
        await wait_until(lambda: connection.connected)
        scheduler = _scheduler(FakeSource(camera_frame), connection)

        await scheduler.tick()

        sent = json.loads(connector.socket.sent[0])
        assert set(sent) == {"frame"}
        await connection.disconnect()

    @pytest.mark.asyncio
    async def test_loop_follows_rate(self, camera_frame):
        controller = RateController(initial=RateState.LOW)
        source = FakeSource(camera_frame)
        scheduler = _scheduler(source, controller=controller)

        scheduler.start()
        assert scheduler.running
        await wait_until(lambda: scheduler.metrics.ticks >= 2)
        await scheduler.stop()

        assert not scheduler.running
        assert controller.period == pytest.approx(1 / 15)

    def test_invalid_quality(self, camera_frame):
        with pytest.raises(ValueError):
            FrameCaptureScheduler(
                FakeSource(camera_frame),
                _RecordingConnection(),
                LatencyTracker(),
                RateController(),
                jpeg_quality=0,
            )
