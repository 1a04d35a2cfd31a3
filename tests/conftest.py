"""
Test Configuration
==================

Pytest fixtures and test doubles for the annotator client.
"""

import asyncio
import json
from typing import List, Optional, Tuple

import numpy as np
import pytest


_END = object()


class FakeSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    def feed(self, message) -> None:
        """Queue an inbound message (dict is JSON-encoded)."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._incoming.put_nowait(message)

    def drop(self) -> None:
        """Simulate the remote side closing the connection."""
        self._incoming.put_nowait(_END)

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _END:
            raise StopAsyncIteration
        return item


class _OpenSocket:
    def __init__(self, socket: FakeSocket, delay: float = 0.0) -> None:
        self._socket = socket
        self._delay = delay

    async def __aenter__(self) -> FakeSocket:
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._socket

    async def __aexit__(self, *exc) -> bool:
        return False


class _FailingOpen:
    async def __aenter__(self):
        raise OSError("Connection refused")

    async def __aexit__(self, *exc) -> bool:
        return False


class FakeConnector:
    """
    Callable replacing websockets.connect.

    Each call records its arguments. While `refuse` is set every open
    fails with OSError; otherwise a fresh FakeSocket is opened, after
    `open_delay` seconds of simulated handshake.
    """

    def __init__(self, refuse: bool = False, open_delay: float = 0.0) -> None:
        self.refuse = refuse
        self.open_delay = open_delay
        self.calls: List[Tuple[str, dict]] = []
        self.sockets: List[FakeSocket] = []

    def __call__(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if self.refuse:
            return _FailingOpen()
        socket = FakeSocket()
        self.sockets.append(socket)
        return _OpenSocket(socket, self.open_delay)

    @property
    def socket(self) -> FakeSocket:
        """Most recently opened socket."""
        return self.sockets[-1]


class FakeSource:
    """VideoSource returning a fixed frame."""

    def __init__(self, frame: Optional[np.ndarray]) -> None:
        self.frame = frame
        self.released = False
        self.reads = 0

    def read(self) -> Optional[np.ndarray]:
        self.reads += 1
        return self.frame

    @property
    def native_size(self) -> Tuple[int, int]:
        if self.frame is None:
            return (0, 0)
        return (int(self.frame.shape[1]), int(self.frame.shape[0]))

    @property
    def last_frame(self) -> Optional[np.ndarray]:
        return self.frame

    def release(self) -> None:
        self.released = True


class FakeDisplay:
    """DisplaySurface with settable sizes that keeps presented overlays."""

    def __init__(
        self,
        native_size: Tuple[int, int] = (640, 480),
        display_size: Tuple[int, int] = (320, 240),
    ) -> None:
        self.native_size = native_size
        self.display_size = display_size
        self.presented: List[np.ndarray] = []

    def present_overlay(self, overlay: np.ndarray) -> None:
        self.presented.append(overlay.copy())


class RecordingStatusSink:
    """StatusSink collecting every call."""

    def __init__(self) -> None:
        self.orientation: List[str] = []
        self.advisory: List[Tuple[str, str]] = []
        self.latency: List[str] = []
        self.bounding_box: List[str] = []

    def set_orientation(self, text: str) -> None:
        self.orientation.append(text)

    def set_advisory(self, text_for_user: str, text_face_distance: str) -> None:
        self.advisory.append((text_for_user, text_face_distance))

    def set_latency_readout(self, text: str) -> None:
        self.latency.append(text)

    def set_bounding_box_readout(self, text: str) -> None:
        self.bounding_box.append(text)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds or the timeout passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def sample_annotation_message():
    """Provide a full annotation message as sent by the service."""
    return {
        "x": 100,
        "y": 50,
        "w": 40,
        "h": 20,
        "colorRectangle": [255, 0, 0],
        "orientation": "frontal",
        "text4User": "Move closer",
        "textFacDis": "Face distance OK",
    }


@pytest.fixture
def connector():
    """Provide a FakeConnector that accepts connections."""
    return FakeConnector()


@pytest.fixture
def camera_frame():
    """Provide a 640x480 BGR frame with some structure."""
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    frame[100:200, 100:300] = (0, 128, 255)
    return frame


@pytest.fixture
def fake_display():
    return FakeDisplay()


@pytest.fixture
def status_sink():
    return RecordingStatusSink()
