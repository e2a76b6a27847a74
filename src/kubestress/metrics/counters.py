"""Outcome counters and the final run summary."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass


class Counters:
    """Monotonic ``total`` / ``failed`` tallies shared by request workers.

    Every increment happens under a ``threading.Lock``. The values are only
    meaningful once all producers have joined; :meth:`snapshot` is meant to
    be read after that barrier.
    """

    def __init__(self) -> None:
        self._total = 0
        self._failed = 0
        self._lock = threading.Lock()

    def add_total(self) -> None:
        """Count one issued request."""
        with self._lock:
            self._total += 1

    def add_failed(self) -> None:
        """Count one failed request."""
        with self._lock:
            self._failed += 1

    def add(self, success: bool) -> None:
        """Count one finished request and, if it failed, one failure."""
        with self._lock:
            self._total += 1
            if not success:
                self._failed += 1

    def snapshot(self) -> tuple[int, int]:
        """Return ``(total, failed)``."""
        with self._lock:
            return self._total, self._failed


@dataclass(frozen=True)
class Summary:
    """Aggregate report of a finished run.

    Attributes:
        total: Requests issued.
        failed: Requests that ended in an error, timeout or cancellation.
        elapsed_seconds: Wall-clock time from start until every worker joined.
        latency_count: Number of successful requests with a recorded latency.
        latency_p50: Median latency in seconds, None without successes.
        latency_p90: 90th percentile latency in seconds.
        latency_p99: 99th percentile latency in seconds.
        latency_max: Slowest successful request in seconds.
    """

    total: int
    failed: int
    elapsed_seconds: float = 0.0
    latency_count: int = 0
    latency_p50: float | None = None
    latency_p90: float | None = None
    latency_p99: float | None = None
    latency_max: float | None = None

    @property
    def succeeded(self) -> int:
        """Return the number of successful requests."""
        return self.total - self.failed

    @property
    def failure_rate(self) -> float:
        """Return the failure percentage, or NaN when nothing was issued."""
        if self.total == 0:
            return math.nan
        return self.failed / self.total * 100

    def format_failure_rate(self) -> str:
        """Return the failure rate as ``"12.50%"`` or ``"undefined"``."""
        rate = self.failure_rate
        if math.isnan(rate):
            return "undefined"
        return f"{rate:.2f}%"

    def describe(self) -> str:
        """Return the one-line report logged at the end of a run."""
        return (
            f"{self.failed} out of {self.total} requests failed, "
            f"failure rate: {self.format_failure_rate()}"
        )
