"""
Transport Module
================

WebSocket transport to the remote annotation service.

This module provides:
    - ConnectionManager: Session lifecycle with bounded fixed-delay reconnect
    - ReconnectPolicy: Attempt counter, cap and delay
    - MessageBroadcaster / Subscription: Fan-out of inbound annotations

Example:
    from annotator_client.transport import ConnectionManager

    manager = ConnectionManager(reconnect_delay=5.0, max_reconnect_attempts=10)
    manager.connect("ws://localhost:5000")

    sent = await manager.send({"frame": payload})

    async for received in manager.messages():
        handle(received)
"""

from annotator_client.transport.broadcast import MessageBroadcaster, Subscription
from annotator_client.transport.connection import (
    ConnectionManager,
    ConnectionMetrics,
    ReconnectPolicy,
)


__all__ = [
    "ConnectionManager",
    "ConnectionMetrics",
    "ReconnectPolicy",
    "MessageBroadcaster",
    "Subscription",
]
