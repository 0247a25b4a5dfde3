"""
Tests for the Statistics Collector.

Requires Python 3.11+.
"""

import threading

import pytest

from watcher.models import WatcherStats
from watcher.stats import StatsCollector


class TestStatsCollector:
    """Test cases for StatsCollector."""

    def test_record_raw(self):
        """Test that every raw event lands in exactly one bucket."""
        stats = StatsCollector()
        stats.record_raw(passed=True)
        stats.record_raw(passed=False)
        stats.record_raw(passed=False)
        stats.record_emitted()

        snapshot = stats.snapshot()
        assert snapshot.raw_count == 3
        assert snapshot.filtered_out_count == 2
        assert snapshot.passed_filter_count == 1
        assert snapshot.emitted_count == 1

    def test_invariant_under_concurrency(self):
        """Test the counters stay consistent with many writers and a reader."""
        stats = StatsCollector()
        violations = []
        done = threading.Event()

        def writer(passed: bool) -> None:
            for _ in range(2000):
                stats.record_raw(passed)

        def reader() -> None:
            while not done.is_set():
                s = stats.snapshot()
                if s.raw_count != s.filtered_out_count + s.passed_filter_count:
                    violations.append(s)

        observer = threading.Thread(target=reader)
        observer.start()
        writers = [threading.Thread(target=writer, args=(i % 2 == 0,)) for i in range(8)]
        for thread in writers:
            thread.start()
        for thread in writers:
            thread.join()
        done.set()
        observer.join()

        snapshot = stats.snapshot()
        assert violations == []
        assert snapshot.raw_count == 16000
        assert snapshot.passed_filter_count == 8000

    def test_reset(self):
        """Test that reset zeroes every counter."""
        stats = StatsCollector()
        stats.record_raw(True)
        stats.record_dropped(3)
        stats.record_error()
        stats.reset()

        assert stats.snapshot() == WatcherStats()


class TestWatcherStats:
    """Test cases for the derived percentages."""

    def test_percentages(self):
        """Test filter efficiency and throughput."""
        stats = WatcherStats(raw_count=10, filtered_out_count=4, passed_filter_count=6, emitted_count=3)

        assert stats.filter_efficiency == pytest.approx(40.0)
        assert stats.throughput == pytest.approx(50.0)
        assert stats.to_dict()["throughput"] == pytest.approx(50.0)

    def test_empty(self):
        """Test that no events means zero percentages, not a division error."""
        assert WatcherStats().filter_efficiency == 0.0
        assert WatcherStats().throughput == 0.0
