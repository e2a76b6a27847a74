"""Latency recording and percentile computation."""

from __future__ import annotations

import threading

import numpy as np


class LatencyStats:
    """Thread-safe collection of successful request latencies (seconds)."""

    def __init__(self) -> None:
        self._values: list[float] = []
        self._lock = threading.Lock()

    def record(self, seconds: float) -> None:
        """Append one latency observation.

        Args:
            seconds: Latency of a successful request in seconds.
        """
        with self._lock:
            self._values.append(seconds)

    def values(self) -> list[float]:
        """Return a copy of the recorded latencies in arrival order."""
        with self._lock:
            return list(self._values)

    def percentiles(self) -> tuple[float, float, float, float] | None:
        """Compute ``(p50, p90, p99, max)`` over all recorded latencies.

        Returns:
            The percentiles in seconds, or None if nothing was recorded.
        """
        values = self.values()
        if not values:
            return None

        arr = np.array(values, dtype=np.float64)
        p50, p90, p99 = np.percentile(arr, [50.0, 90.0, 99.0])
        return float(p50), float(p90), float(p99), float(np.max(arr))

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
