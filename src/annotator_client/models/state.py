"""
Client State Models
===================

Discrete states shared across the annotator client.

Core Concepts:
    - ConnectionState: Lifecycle of the transport to the annotation service
    - RateState: Target capture rate chosen from observed latency

Connection Transitions:
    DISCONNECTED -> CONNECTING:  connect()
    CONNECTING   -> CONNECTED:   socket opened
    CONNECTING/CONNECTED -> FAILED: error or close event
    FAILED -> CONNECTING:        reconnect attempt (attempts < max)
    FAILED -> DISCONNECTED:      attempts exhausted (terminal)
    any -> DISCONNECTED:         disconnect()
"""

from enum import Enum


class ConnectionState(str, Enum):
    """
    Transport lifecycle states.

    Attributes:
        DISCONNECTED: No session, no reconnect pending
        CONNECTING: Session open in progress
        CONNECTED: Session open, sends allowed
        FAILED: Session lost, reconnect may be pending
    """

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    FAILED = "FAILED"


class RateState(int, Enum):
    """
    Target capture rates in frames per second.

    Attributes:
        LOW: Average latency above the high threshold
        MEDIUM: Average latency between the thresholds
        FULL: Average latency at or below the moderate threshold
    """

    LOW = 15
    MEDIUM = 20
    FULL = 30

    @property
    def fps(self) -> int:
        return int(self.value)

    @property
    def period(self) -> float:
        """Seconds between capture ticks."""
        return 1.0 / self.value
