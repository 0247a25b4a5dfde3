"""
Zeami Watcher Statistics.

Thread-safe pipeline counters.
Requires Python 3.11+.
"""

import threading

from watcher.models import WatcherStats


class StatsCollector:
    """
    Counters shared by the source, worker and debounce timer threads.

    All updates go through one lock, so every snapshot satisfies
    ``raw == filtered_out + passed_filter``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._raw = 0
        self._filtered_out = 0
        self._passed_filter = 0
        self._emitted = 0
        self._dropped = 0
        self._errors = 0

    def record_raw(self, passed: bool) -> None:
        """Count one raw event and its filter outcome."""
        with self._lock:
            self._raw += 1
            if passed:
                self._passed_filter += 1
            else:
                self._filtered_out += 1

    def record_emitted(self) -> None:
        with self._lock:
            self._emitted += 1

    def record_dropped(self, count: int = 1) -> None:
        with self._lock:
            self._dropped += count

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def snapshot(self) -> WatcherStats:
        """Get an immutable copy of the counters."""
        with self._lock:
            return WatcherStats(
                raw_count=self._raw,
                filtered_out_count=self._filtered_out,
                passed_filter_count=self._passed_filter,
                emitted_count=self._emitted,
                dropped_count=self._dropped,
                error_count=self._errors,
            )

    def reset(self) -> None:
        """Reset all counters to zero."""
        with self._lock:
            self._raw = 0
            self._filtered_out = 0
            self._passed_filter = 0
            self._emitted = 0
            self._dropped = 0
            self._errors = 0
