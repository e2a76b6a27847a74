"""Tests for LatencyStats."""

from __future__ import annotations

import threading

import pytest

from kubestress.metrics.latency import LatencyStats


class TestLatencyStats:
    """Tests for latency collection and percentiles."""

    def test_empty(self) -> None:
        stats = LatencyStats()
        assert len(stats) == 0
        assert stats.values() == []
        assert stats.percentiles() is None

    def test_single_value(self) -> None:
        stats = LatencyStats()
        stats.record(0.25)
        assert stats.percentiles() == (0.25, 0.25, 0.25, 0.25)

    def test_percentiles(self) -> None:
        stats = LatencyStats()
        for ms in range(1, 101):
            stats.record(ms / 1000)

        p50, p90, p99, p_max = stats.percentiles()  # type: ignore[misc]
        assert p50 == pytest.approx(0.0505)
        assert p90 == pytest.approx(0.0901)
        assert p99 == pytest.approx(0.09901)
        assert p_max == pytest.approx(0.1)

    def test_values_returns_copy(self) -> None:
        stats = LatencyStats()
        stats.record(1.0)
        stats.values().clear()
        assert len(stats) == 1

    def test_concurrent_record(self) -> None:
        stats = LatencyStats()

        def producer() -> None:
            for _ in range(1000):
                stats.record(0.001)

        threads = [threading.Thread(target=producer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(stats) == 4000
