"""
Zeami Watcher Debouncer.

Per-path trailing-edge debouncing of raw file system events.
Requires Python 3.11+.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from utils.logger import LoggerMixin
from watcher.models import EventKind, RawEvent


@dataclass
class DebounceEntry:
    """
    Pending state for one path.

    Only the thread holding ``lock`` may mutate the entry. ``generation``
    is bumped on every update so a timer scheduled for an older update
    knows it has been superseded.
    """

    key: Path
    kind: EventKind
    first_seen_at: float
    last_seen_at: float
    coalesced_count: int = 1
    timer: threading.Timer | None = None
    generation: int = 0
    saw_delete: bool = False
    closed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class Debouncer(LoggerMixin):
    """
    Debounces rapid file changes, one independent timer per path.

    Each event for a path restarts that path's timer; the entry is handed
    to ``on_settled`` once no event arrived for ``delay_ms``. Activity on
    one path never touches another path's timer.
    """

    def __init__(
        self,
        delay_ms: int = 100,
        on_settled: Callable[[DebounceEntry], Any] | None = None,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period in milliseconds before an entry settles
            on_settled: Called from the timer thread with each settled entry
        """
        self._delay = delay_ms / 1000.0
        self._on_settled = on_settled
        self._entries: dict[Path, DebounceEntry] = {}
        self._map_lock = threading.Lock()
        self._state = threading.Condition()
        self._stopping = False
        self._in_flight: set[int] = set()

    @property
    def delay(self) -> float:
        return self._delay

    def submit(self, event: RawEvent) -> bool:
        """
        Record an event and (re)start its path's quiet timer.

        Returns:
            False if the debouncer is stopping and the event was discarded
        """
        while True:
            if self._stopping:
                return False

            with self._map_lock:
                entry = self._entries.get(event.path)
                if entry is None:
                    entry = DebounceEntry(
                        key=event.path,
                        kind=event.kind,
                        first_seen_at=event.observed_at,
                        last_seen_at=event.observed_at,
                        coalesced_count=0,
                    )
                    self._entries[event.path] = entry

            with entry.lock:
                if entry.closed:
                    # Fired or cancelled between lookup and lock; start over
                    continue
                if self._stopping:
                    return False
                self._update(entry, event)
                self._schedule(entry)
                return True

    def _update(self, entry: DebounceEntry, event: RawEvent) -> None:
        if entry.coalesced_count > 0:
            entry.kind = self._merge_kind(entry, event.kind)
        if event.kind is EventKind.DELETED:
            entry.saw_delete = True
        entry.last_seen_at = max(entry.last_seen_at, event.observed_at)
        entry.coalesced_count += 1
        entry.generation += 1

    @staticmethod
    def _merge_kind(entry: DebounceEntry, new_kind: EventKind) -> EventKind:
        # Latest kind wins, except delete-then-create which is a rewrite
        if new_kind is EventKind.CREATED and entry.saw_delete:
            return EventKind.MODIFIED
        return new_kind

    def _schedule(self, entry: DebounceEntry) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
        generation = entry.generation
        timer = threading.Timer(self._delay, self._fire, args=(entry, generation))
        timer.daemon = True
        timer.name = f"zeami-debounce-{generation}"
        entry.timer = timer
        # Errors from start() propagate to the submitter
        timer.start()

    def _fire(self, entry: DebounceEntry, generation: int) -> None:
        with entry.lock:
            if entry.closed or entry.generation != generation:
                return
            entry.closed = True
            entry.timer = None
            with self._map_lock:
                if self._entries.get(entry.key) is entry:
                    del self._entries[entry.key]

        with self._state:
            if self._stopping:
                return
            self._in_flight.add(threading.get_ident())

        try:
            self.log.debug(
                "debounce_fired",
                path=str(entry.key),
                kind=entry.kind.value,
                coalesced_count=entry.coalesced_count,
                window_ms=round((time.monotonic() - entry.first_seen_at) * 1000, 1),
            )
            if self._on_settled is not None:
                self._on_settled(entry)
        finally:
            with self._state:
                self._in_flight.discard(threading.get_ident())
                self._state.notify_all()

    def stop(self, timeout: float | None = 5.0) -> int:
        """
        Cancel every pending timer without emitting.

        Waits for settle callbacks that are already running to return,
        except one running on the calling thread.

        Returns:
            Number of pending entries that were discarded
        """
        with self._state:
            self._stopping = True

        with self._map_lock:
            entries = list(self._entries.values())
            self._entries.clear()

        for entry in entries:
            with entry.lock:
                entry.closed = True
                if entry.timer is not None:
                    entry.timer.cancel()
                    entry.timer = None

        with self._state:
            # A settle callback may call stop itself; never wait on our own thread
            current = threading.get_ident()
            drained = self._state.wait_for(
                lambda: not (self._in_flight - {current}),
                timeout=timeout,
            )
        if not drained:
            self.log.warning("debounce_stop_timeout", in_flight=len(self._in_flight))

        if entries:
            self.log.debug("debounce_cancelled", discarded=len(entries))
        return len(entries)

    @property
    def pending_count(self) -> int:
        """Get number of paths inside their quiet window."""
        with self._map_lock:
            return len(self._entries)

    @property
    def pending_paths(self) -> list[Path]:
        """Get list of paths with pending changes."""
        with self._map_lock:
            return list(self._entries.keys())
