"""
Latency Tracker
===============

Round-trip latency samples for the capture/annotate cycle.

This tracker:
    - Holds the instant of the most recent frame send
    - On each received annotation, appends (receive - last send) in ms
    - Exposes the arithmetic mean over the full sample history

Attribution:
    No frame identifier is exchanged with the annotation service, so each
    sample is "time since the last send". This is exact only while sends
    and replies strictly alternate; with several frames in flight a reply
    is attributed to the newest send.

History:
    Unbounded by default (short interactive sessions). Pass max_samples to
    keep a fixed-capacity ring buffer for long-running sessions; the mean
    then covers only the retained samples.
"""

import logging
from collections import deque
from typing import Deque, Optional, Tuple

from annotator_client.errors import EmptyHistoryError


logger = logging.getLogger(__name__)


class LatencyTracker:
    """
    Append-only round-trip latency history.

    Instants are time.perf_counter() values in seconds; samples are
    stored in milliseconds.

    Attributes:
        max_samples: Optional history bound (None = unbounded)

    Example:
        tracker = LatencyTracker()
        tracker.mark_sent(time.perf_counter())
        ...
        sample_ms = tracker.record(time.perf_counter())
        if tracker.count:
            print(tracker.average())
    """

    def __init__(
        self,
        max_samples: Optional[int] = None,
        log_every_n_samples: int = 30,
    ) -> None:
        """
        Initialize latency tracker.

        Args:
            max_samples: Keep only the newest N samples. None = unbounded.
            log_every_n_samples: Log last/average every N samples
        """
        if max_samples is not None and max_samples < 1:
            raise ValueError("max_samples must be >= 1 or None")

        self.max_samples = max_samples
        self.log_every_n_samples = log_every_n_samples

        self._samples: Deque[float] = deque(maxlen=max_samples)
        self._last_sent_at: Optional[float] = None
        self._total_recorded: int = 0

    def mark_sent(self, instant: float) -> None:
        """Store the send instant used as reference for the next sample."""
        self._last_sent_at = instant

    def record(self, received_at: float) -> Optional[float]:
        """
        Append a sample for a reply received at the given instant.

        Args:
            received_at: time.perf_counter() value at message arrival

        Returns:
            The sample in milliseconds, or None when nothing was sent yet.
        """
        if self._last_sent_at is None:
            logger.warning("Annotation received before any frame was sent, ignored")
            return None

        sample_ms = (received_at - self._last_sent_at) * 1000.0
        self._samples.append(sample_ms)
        self._total_recorded += 1

        if self._total_recorded % self.log_every_n_samples == 0:
            logger.info(
                f"Latency [sample {self._total_recorded}]: "
                f"last={sample_ms:.3f}ms, avg={self.average():.3f}ms"
            )

        return sample_ms

    def average(self) -> float:
        """
        Arithmetic mean of the sample history in milliseconds.

        Raises:
            EmptyHistoryError: If no sample has been recorded
        """
        if not self._samples:
            raise EmptyHistoryError("No latency samples recorded")
        return sum(self._samples) / len(self._samples)

    @property
    def last(self) -> Optional[float]:
        """Most recent sample in milliseconds."""
        return self._samples[-1] if self._samples else None

    @property
    def count(self) -> int:
        """Number of samples currently held."""
        return len(self._samples)

    @property
    def samples(self) -> Tuple[float, ...]:
        return tuple(self._samples)

    @property
    def last_sent_at(self) -> Optional[float]:
        return self._last_sent_at

    def reset(self) -> None:
        """Clear history and send reference."""
        self._samples.clear()
        self._last_sent_at = None
        self._total_recorded = 0
        logger.info("LatencyTracker reset")

    def get_metrics(self) -> dict:
        """Get tracker metrics for observability."""
        return {
            "samples": self.count,
            "total_recorded": self._total_recorded,
            "last_ms": round(self.last, 3) if self.last is not None else None,
            "average_ms": round(self.average(), 3) if self._samples else None,
            "max_samples": self.max_samples,
        }
