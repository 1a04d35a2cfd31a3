"""
Control Module
==============

Latency measurement and capture rate control.

Components:
    - LatencyTracker: Round-trip samples and running mean
    - RateController / decide: Latency-to-rate mapping (15 / 20 / 30 fps)
"""

from annotator_client.control.latency import LatencyTracker
from annotator_client.control.rate import (
    DEFAULT_THRESHOLDS,
    RateController,
    RateThresholds,
    decide,
)


__all__ = [
    "LatencyTracker",
    "RateController",
    "RateThresholds",
    "DEFAULT_THRESHOLDS",
    "decide",
]
