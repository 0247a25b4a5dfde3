"""
Zeami Watcher Event Sources.

Raw change notifications from the operating system (watchdog observers)
or from periodic directory snapshot diffing when native notifications
are unavailable.
Requires Python 3.11+.
"""

import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.utils.dirsnapshot import DirectorySnapshot, DirectorySnapshotDiff

from utils.logger import LoggerMixin
from watcher.errors import WatchSourceError
from watcher.models import EventKind, RawEvent
from watcher.registry import WatchRoot

SourceEmit = Callable[[RawEvent | WatchSourceError], None]


class EventSource(ABC, LoggerMixin):
    """
    A producer of raw file system events.

    ``subscribe`` must not return before the source is delivering events.
    Events (and run-time failures, as WatchSourceError values) are handed
    to ``emit`` from the source's own thread.
    """

    name: str = "source"

    @abstractmethod
    def subscribe(self, roots: list[WatchRoot], emit: SourceEmit) -> None:
        """
        Start delivering events for ``roots``.

        Raises:
            WatchSourceError: the source cannot be established
        """

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivering events and join background threads. Idempotent."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Check that the background threads are still running."""


class RawEventHandler(FileSystemEventHandler):
    """
    Translates watchdog events into RawEvents.

    Directory events are ignored; a move is reported as a rename of the
    source path and a creation of the destination.
    """

    def __init__(self, emit: SourceEmit) -> None:
        super().__init__()
        self._emit = emit

    def _send(self, path: bytes | str, kind: EventKind) -> None:
        self._emit(RawEvent(path=Path(os.fsdecode(path)), kind=kind))

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        if not event.is_directory:
            self._send(event.src_path, EventKind.CREATED)

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        if not event.is_directory:
            self._send(event.src_path, EventKind.MODIFIED)

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        if not event.is_directory:
            self._send(event.src_path, EventKind.DELETED)

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        if event.is_directory:
            return
        self._send(event.src_path, EventKind.RENAMED)
        self._send(event.dest_path, EventKind.CREATED)


class NativeEventSource(EventSource):
    """
    Event source backed by the platform observer.

    inotify on Linux, FSEvents on macOS, ReadDirectoryChangesW on Windows.
    """

    name = "native"

    def __init__(self, observer_factory: Callable[[], Observer] = Observer) -> None:
        self._observer_factory = observer_factory
        self._observer: Observer | None = None

    def subscribe(self, roots: list[WatchRoot], emit: SourceEmit) -> None:
        if self._observer is not None:
            raise WatchSourceError("Native source is already subscribed", self.name)

        observer = self._observer_factory()
        handler = RawEventHandler(emit)
        try:
            for root in roots:
                observer.schedule(handler, str(root.path), recursive=root.recursive)
            observer.start()
        except OSError as e:
            # Watch descriptor exhaustion and unsupported filesystems land here
            self._shutdown(observer)
            raise WatchSourceError(f"Native file watching unavailable: {e}", self.name) from e

        self._observer = observer
        self.log.info(
            "native_source_subscribed",
            observer=type(observer).__name__,
            roots=[str(r.path) for r in roots],
        )

    def unsubscribe(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        self._shutdown(observer)
        self.log.info("native_source_unsubscribed")

    def is_alive(self) -> bool:
        observer = self._observer
        if observer is None or not observer.is_alive():
            return False
        return all(emitter.is_alive() for emitter in observer.emitters)

    @staticmethod
    def _shutdown(observer: Observer) -> None:
        observer.stop()
        if observer.is_alive():
            observer.join(timeout=5.0)


class PollingEventSource(EventSource):
    """
    Poll mode: periodic full-tree snapshots diffed against the previous one.

    Trades latency for reliability on network filesystems and container
    overlays where native notifications never arrive.
    """

    name = "polling"

    def __init__(self, interval: float = 1.0) -> None:
        """
        Initialize the polling source.

        Args:
            interval: Seconds between two snapshots
        """
        self._interval = interval
        self._roots: list[WatchRoot] = []
        self._snapshots: dict[Path, DirectorySnapshot | None] = {}
        self._emit: SourceEmit | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._scan_lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    def subscribe(self, roots: list[WatchRoot], emit: SourceEmit) -> None:
        if self._thread is not None:
            raise WatchSourceError("Polling source is already subscribed", self.name)

        self._roots = list(roots)
        self._emit = emit
        self._stop_event.clear()
        try:
            self._snapshots = {root.path: self._take(root) for root in self._roots}
        except OSError as e:
            raise WatchSourceError(f"Initial snapshot failed: {e}", self.name) from e

        self._thread = threading.Thread(
            target=self._run,
            name="zeami-poll-source",
            daemon=True,
        )
        self._thread.start()
        self.log.info(
            "polling_source_subscribed",
            interval=self._interval,
            roots=[str(r.path) for r in self._roots],
        )

    def unsubscribe(self) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=5.0)
        self._emit = None
        self.log.info("polling_source_unsubscribed")

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.scan_once()
            except Exception as e:
                self.log.error("poll_scan_failed", error=str(e))
                emit = self._emit
                if emit is not None:
                    emit(WatchSourceError(f"Polling scan failed: {e}", self.name))
                return

    def scan_once(self) -> list[RawEvent]:
        """
        Take a new snapshot of every root and emit the differences.

        Returns:
            The synthesised events, in emission order
        """
        events: list[RawEvent] = []
        with self._scan_lock:
            for root in self._roots:
                previous = self._snapshots.get(root.path)
                try:
                    current = self._take(root)
                except FileNotFoundError:
                    self.log.warning("poll_root_missing", path=str(root.path))
                    current = None
                events.extend(self._diff(previous, current))
                self._snapshots[root.path] = current

        emit = self._emit
        if emit is not None and not self._stop_event.is_set():
            for event in events:
                emit(event)
        return events

    @staticmethod
    def _take(root: WatchRoot) -> DirectorySnapshot:
        return DirectorySnapshot(str(root.path), recursive=root.recursive)

    @staticmethod
    def _diff(
        previous: DirectorySnapshot | None,
        current: DirectorySnapshot | None,
    ) -> list[RawEvent]:
        if previous is None and current is None:
            return []
        if previous is None:
            return [
                RawEvent(Path(os.fsdecode(p)), EventKind.CREATED)
                for p in sorted(current.paths)
                if not current.isdir(p)
            ]
        if current is None:
            return [
                RawEvent(Path(os.fsdecode(p)), EventKind.DELETED)
                for p in sorted(previous.paths)
                if not previous.isdir(p)
            ]

        diff = DirectorySnapshotDiff(previous, current)
        moved_from = {src for src, _ in diff.files_moved}
        events: list[RawEvent] = []
        for src, dest in sorted(diff.files_moved):
            events.append(RawEvent(Path(os.fsdecode(src)), EventKind.RENAMED))
            events.append(RawEvent(Path(os.fsdecode(dest)), EventKind.CREATED))
        events.extend(
            RawEvent(Path(os.fsdecode(p)), EventKind.CREATED) for p in sorted(diff.files_created)
        )
        events.extend(
            RawEvent(Path(os.fsdecode(p)), EventKind.MODIFIED) for p in sorted(diff.files_modified)
            if p not in moved_from
        )
        events.extend(
            RawEvent(Path(os.fsdecode(p)), EventKind.DELETED) for p in sorted(diff.files_deleted)
        )
        return events


def create_event_source(force_polling: bool = False, poll_interval: float = 1.0) -> EventSource:
    """Build the preferred event source."""
    if force_polling:
        return PollingEventSource(interval=poll_interval)
    return NativeEventSource()
