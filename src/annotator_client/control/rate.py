"""
Rate Controller
===============

Closed-loop capture rate selection from average round-trip latency.

Decision Rule (thresholds inclusive on the low-rate side):
    average > high_latency_ms                         -> LOW    (15 fps)
    moderate_latency_ms < average <= high_latency_ms  -> MEDIUM (20 fps)
    average <= moderate_latency_ms                    -> FULL   (30 fps)

Key Features:
    - decide() is pure: no I/O, no memory of previous decisions
    - No smoothing or hysteresis beyond the thresholds themselves
    - Recomputed after every round trip; the scheduler reads the current
      rate on every tick, so a change applies from the next tick
"""

import logging
from dataclasses import dataclass
from typing import Optional

from annotator_client.control.latency import LatencyTracker
from annotator_client.models.state import RateState


logger = logging.getLogger(__name__)


HIGH_LATENCY_MS = 100.0
MODERATE_LATENCY_MS = 50.0


@dataclass(frozen=True)
class RateThresholds:
    """
    Latency thresholds in milliseconds.

    Attributes:
        high_latency_ms: Above this, capture at LOW rate
        moderate_latency_ms: Above this (and up to high), capture at MEDIUM
    """

    high_latency_ms: float = HIGH_LATENCY_MS
    moderate_latency_ms: float = MODERATE_LATENCY_MS

    def __post_init__(self) -> None:
        if self.moderate_latency_ms > self.high_latency_ms:
            raise ValueError("moderate_latency_ms must not exceed high_latency_ms")


DEFAULT_THRESHOLDS = RateThresholds()


def decide(
    average_latency_ms: float,
    thresholds: RateThresholds = DEFAULT_THRESHOLDS,
) -> RateState:
    """
    Map an average latency to a target capture rate.

    Args:
        average_latency_ms: Mean round-trip latency in milliseconds
        thresholds: Band edges

    Returns:
        RateState for the band the latency falls in
    """
    if average_latency_ms > thresholds.high_latency_ms:
        return RateState.LOW
    if average_latency_ms > thresholds.moderate_latency_ms:
        return RateState.MEDIUM
    return RateState.FULL


class RateController:
    """
    Holder of the current target rate.

    The scheduler reads `period` on every tick; the session calls
    `recompute()` after every received annotation.

    Example:
        controller = RateController()
        tracker.record(received_at)
        controller.recompute(tracker)
        await asyncio.sleep(controller.period)
    """

    def __init__(
        self,
        thresholds: Optional[RateThresholds] = None,
        initial: RateState = RateState.FULL,
    ) -> None:
        """
        Initialize rate controller.

        Args:
            thresholds: Latency band edges (defaults: 100ms / 50ms)
            initial: Rate used until the first round trip completes
        """
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self._state: RateState = initial
        self._changes: int = 0

        logger.info(
            f"RateController initialized: initial={initial.fps}fps, "
            f"high={self.thresholds.high_latency_ms}ms, "
            f"moderate={self.thresholds.moderate_latency_ms}ms"
        )

    @property
    def state(self) -> RateState:
        return self._state

    @property
    def fps(self) -> int:
        return self._state.fps

    @property
    def period(self) -> float:
        """Seconds between capture ticks at the current rate."""
        return self._state.period

    def recompute(self, tracker: LatencyTracker) -> RateState:
        """
        Re-derive the rate from the tracker's current average.

        Leaves the rate unchanged while the tracker holds no samples.
        """
        if tracker.count == 0:
            return self._state

        average_ms = tracker.average()
        new_state = decide(average_ms, self.thresholds)
        if new_state != self._state:
            self._changes += 1
            logger.info(
                f"Capture rate {self._state.fps} -> {new_state.fps} fps "
                f"(avg latency {average_ms:.1f}ms)"
            )
            self._state = new_state
        return self._state

    def get_metrics(self) -> dict:
        return {
            "fps": self.fps,
            "rate_state": self._state.name,
            "rate_changes": self._changes,
        }
