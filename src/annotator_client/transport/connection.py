"""
Connection Manager
==================

WebSocket transport to the remote annotation service.

This module provides the ConnectionManager class which:
    - Opens a session to the configured ws:// or wss:// endpoint
    - Sends JSON messages while connected, rejects them otherwise
    - Parses inbound annotation messages and broadcasts them
    - Reconnects after a fixed delay, up to a bounded number of attempts
    - Tears down on request without triggering reconnection

State Machine:
    DISCONNECTED --connect--> CONNECTING --open--> CONNECTED
    CONNECTING/CONNECTED --error or close--> FAILED
    FAILED --attempts < max, after retry_delay--> CONNECTING
    FAILED --attempts >= max--> DISCONNECTED (terminal, stream completes)

Design Rules:
    - Transport errors and remote closes are handled identically
    - Fixed reconnect delay, no exponential backoff
    - At most one session and one pending reconnect at any time
    - Attempt counter resets on every successful open
    - Public operations never raise; failures are logged and counted
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from annotator_client.errors import TransportError
from annotator_client.models.annotation import Annotation, ReceivedAnnotation
from annotator_client.models.state import ConnectionState
from annotator_client.transport.broadcast import MessageBroadcaster, Subscription


logger = logging.getLogger(__name__)


StateListener = Callable[[ConnectionState, ConnectionState], None]


@dataclass
class ReconnectPolicy:
    """
    Bounded fixed-delay reconnect policy.

    Attributes:
        max_attempts: Reconnect attempts allowed per failure episode
        retry_delay: Seconds to wait before each attempt
        attempts: Attempts made in the current episode
    """

    max_attempts: int = 10
    retry_delay: float = 5.0
    attempts: int = 0

    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts

    def reset(self) -> None:
        self.attempts = 0


class ConnectionMetrics:
    """Metrics for ConnectionManager observability."""

    __slots__ = (
        "messages_sent",
        "messages_received",
        "send_rejected",
        "send_failures",
        "reconnect_count",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.messages_sent: int = 0
        self.messages_received: int = 0
        self.send_rejected: int = 0
        self.send_failures: int = 0
        self.reconnect_count: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
            "send_rejected": self.send_rejected,
            "send_failures": self.send_failures,
            "reconnect_count": self.reconnect_count,
            "parse_errors": self.parse_errors,
        }


class ConnectionManager:
    """
    Owner of the WebSocket session to the annotation service.

    Attributes:
        policy: Reconnect policy (attempt counter, cap, delay)
        state: Current ConnectionState
        metrics: Operational metrics
        exhausted: True once reconnect attempts ran out for this lifetime
        last_error: Most recent session failure, None until one occurs

    Example:
        manager = ConnectionManager(reconnect_delay=5.0, max_reconnect_attempts=10)
        manager.connect("ws://localhost:5000")

        async for received in manager.messages():
            print(received.annotation)

        await manager.disconnect()
    """

    def __init__(
        self,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 10.0,
        close_timeout: float = 5.0,
        subscriber_queue_size: int = 32,
        connector: Optional[Callable[..., Any]] = None,
    ) -> None:
        """
        Initialize connection manager.

        Args:
            reconnect_delay: Fixed seconds between reconnect attempts
            max_reconnect_attempts: Attempts per failure episode
            ping_interval: WebSocket keepalive ping interval (None disables)
            ping_timeout: Seconds to wait for a pong
            close_timeout: Seconds to wait for the closing handshake
            subscriber_queue_size: Queue bound for each message subscriber
            connector: Factory returning an async context manager that yields
                a socket; defaults to websockets.connect
        """
        if reconnect_delay < 0:
            raise ValueError("reconnect_delay must be >= 0")
        if max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")

        self.policy = ReconnectPolicy(
            max_attempts=max_reconnect_attempts,
            retry_delay=reconnect_delay,
        )
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.close_timeout = close_timeout
        self.metrics = ConnectionMetrics()
        self.exhausted: bool = False
        self.last_error: Optional[TransportError] = None

        self._connector = connector or websockets.connect
        self._subscriber_queue_size = subscriber_queue_size
        self._broadcaster: MessageBroadcaster[ReceivedAnnotation] = MessageBroadcaster(
            subscriber_maxsize=subscriber_queue_size
        )

        # State
        self._state: ConnectionState = ConnectionState.DISCONNECTED
        self._url: Optional[str] = None
        self._websocket: Optional[Any] = None
        self._session_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing: bool = False
        self._rejected_streak: int = 0
        self._state_listeners: List[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Whether sends are currently allowed."""
        return self._state == ConnectionState.CONNECTED

    @property
    def url(self) -> Optional[str]:
        """Last endpoint passed to connect()."""
        return self._url

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a callback invoked as listener(old_state, new_state)."""
        self._state_listeners.append(listener)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def connect(self, url: str) -> None:
        """
        Start a connection lifetime to the given endpoint.

        Returns immediately; the session opens on the running event loop.
        Calling while CONNECTING or CONNECTED is tolerated and ignored.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.warning(
                f"connect() ignored, session already {self._state.value.lower()}"
            )
            return

        self._cancel_reconnect()
        self._url = url
        self._closing = False
        self.exhausted = False
        self.policy.reset()
        if self._broadcaster.closed:
            self._broadcaster = MessageBroadcaster(
                subscriber_maxsize=self._subscriber_queue_size
            )

        logger.info(f"Connecting to annotation service: {url}")
        self._open()

    async def send(self, payload: dict) -> bool:
        """
        Send a JSON message if connected.

        Args:
            payload: JSON-serializable message body

        Returns:
            True if written to the socket, False if rejected or failed.
        """
        websocket = self._websocket
        if self._state != ConnectionState.CONNECTED or websocket is None:
            self.metrics.send_rejected += 1
            self._rejected_streak += 1
            if self._rejected_streak == 1:
                logger.warning(
                    f"Cannot send message, not connected "
                    f"(state={self._state.value})"
                )
            else:
                logger.debug(f"Send rejected ({self._rejected_streak} in a row)")
            return False

        try:
            await websocket.send(json.dumps(payload))
        except ConnectionClosed as e:
            self.metrics.send_failures += 1
            logger.warning(f"Send failed, connection closed: {e}")
            return False

        self.metrics.messages_sent += 1
        return True

    def messages(self) -> Subscription[ReceivedAnnotation]:
        """
        Subscribe to inbound annotations for the current lifetime.

        Each call returns an independent subscription that observes only
        messages arriving after the call. Iteration ends when the lifetime
        ends (disconnect or exhausted reconnects).
        """
        return self._broadcaster.subscribe()

    async def disconnect(self) -> None:
        """
        Close the session without reconnecting.

        Cancels any pending reconnect, closes the socket, completes the
        message stream and moves to DISCONNECTED.
        """
        logger.info("Disconnecting from annotation service...")
        self._closing = True
        self._cancel_reconnect()

        websocket = self._websocket
        if websocket is not None:
            try:
                await websocket.close()
            except (WebSocketException, OSError) as e:
                logger.debug(f"Error while closing socket: {e}")

        task = self._session_task
        if task is not None and not task.done():
            if websocket is None:
                # Handshake still in progress, nothing to close gracefully
                task.cancel()
            try:
                await asyncio.wait_for(task, timeout=self.close_timeout)
            except asyncio.TimeoutError:
                logger.warning("Session did not close in time, cancelled")
            except asyncio.CancelledError:
                pass
        self._session_task = None

        self._set_state(ConnectionState.DISCONNECTED)
        self._broadcaster.close()

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        """Move to CONNECTING and spawn the session task."""
        self._set_state(ConnectionState.CONNECTING)
        loop = asyncio.get_running_loop()
        self._session_task = loop.create_task(
            self._run_session(self._url),
            name="annotation_transport",
        )

    async def _run_session(self, url: str) -> None:
        """Hold one session open until it fails or is closed."""
        try:
            async with self._connector(
                url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                close_timeout=self.close_timeout,
            ) as ws:
                if self._closing:
                    return
                self._websocket = ws
                self.policy.reset()
                self._rejected_streak = 0
                self._set_state(ConnectionState.CONNECTED)
                logger.info(f"Connected to annotation service: {url}")

                async for message in ws:
                    self._on_message(message)

                if not self._closing:
                    self.last_error = TransportError("Connection closed by annotation service")
                    logger.warning(str(self.last_error))

        except ConnectionClosed as e:
            self.last_error = TransportError(f"Connection closed with error: {e}")
            logger.warning(str(self.last_error))
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            self.last_error = TransportError(f"Connection error: {e}")
            logger.error(str(self.last_error))
        finally:
            self._websocket = None

        if self._closing:
            return

        self._set_state(ConnectionState.FAILED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Arm the reconnect timer, or give up once attempts are exhausted."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            logger.debug("Reconnect already pending")
            return

        if not self.policy.can_retry():
            logger.error(
                f"Max reconnect attempts ({self.policy.max_attempts}) reached, "
                f"giving up on {self._url}"
            )
            self.exhausted = True
            self._set_state(ConnectionState.DISCONNECTED)
            self._broadcaster.close()
            return

        self.policy.attempts += 1
        self.metrics.reconnect_count += 1
        logger.info(
            f"Reconnecting in {self.policy.retry_delay:.1f}s "
            f"(attempt {self.policy.attempts}/{self.policy.max_attempts})"
        )
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_after_delay(),
            name="annotation_reconnect",
        )

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.policy.retry_delay)
        if self._closing or self._state != ConnectionState.FAILED:
            return
        self._open()

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Pending reconnect cancelled")
        self._reconnect_task = None

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        if new_state == old_state:
            return
        self._state = new_state
        logger.info(f"Connection state: {old_state.value} -> {new_state.value}")

        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    # -------------------------------------------------------------------------
    # Inbound messages
    # -------------------------------------------------------------------------

    def _on_message(self, raw: Any) -> None:
        """Stamp, parse and broadcast one inbound message."""
        received_at = time.perf_counter()
        self.metrics.messages_received += 1

        annotation = self._parse_annotation(raw)
        if annotation is None:
            return

        self._broadcaster.publish(
            ReceivedAnnotation(annotation=annotation, received_at=received_at)
        )

    def _parse_annotation(self, raw: Any) -> Optional[Annotation]:
        """
        Parse and validate a raw WebSocket message.

        Args:
            raw: Raw JSON text (or bytes) from the socket

        Returns:
            Validated Annotation, or None on parse error
        """
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Failed to parse annotation JSON: {e}")
            return None

        try:
            return Annotation.model_validate(data)
        except ValidationError as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid annotation structure: {e}")
            return None

    def get_metrics(self) -> dict:
        """Connection metrics including state and reconnect policy."""
        return {
            "state": self._state.value,
            "url": self._url,
            "reconnect_attempts": self.policy.attempts,
            "max_reconnect_attempts": self.policy.max_attempts,
            "exhausted": self.exhausted,
            "last_error": str(self.last_error) if self.last_error else None,
            **self.metrics.to_dict(),
            "broadcast": self._broadcaster.metrics(),
        }
