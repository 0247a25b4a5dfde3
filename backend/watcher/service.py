"""
Zeami Watcher Service.

Owns the watcher lifecycle and wires the pipeline:
event source -> bounded buffer -> filter -> debouncer -> classifier -> output.
Requires Python 3.11+.
"""

import asyncio
import inspect
import queue
import threading
import time
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any

from utils.logger import LoggerMixin
from watcher.classifier import Classifier
from watcher.config import WatchConfig, WatchTarget
from watcher.debouncer import DebounceEntry, Debouncer
from watcher.errors import AlreadyRunningError, InvalidTargetError, WatchSourceError
from watcher.filters import EventFilter
from watcher.models import ClassifiedEvent, RawEvent, WatchErrorEvent, WatcherStats
from watcher.registry import TargetRegistry, WatchRoot
from watcher.sources import EventSource, PollingEventSource, create_event_source
from watcher.stats import StatsCollector

OutputItem = ClassifiedEvent | WatchErrorEvent
SourceFactory = Callable[[bool, float], EventSource]

LIVENESS_INTERVAL = 0.5
WORKER_POLL_TIMEOUT = 0.05


class ServiceState(str, Enum):
    """Lifecycle states of the watcher service."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class EventChannel:
    """
    Bounded output stream of classified events and error events.

    Written from the pipeline threads; read by the consumer at its own pace.
    A consumer that never reads (one relying on the callback instead)
    only ever costs ``maxsize`` items: the oldest is dropped to make room.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: queue.Queue[OutputItem] = queue.Queue(maxsize=maxsize)
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def dropped_count(self) -> int:
        """Items discarded because the channel was full."""
        return self._dropped

    def put(self, item: OutputItem) -> None:
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(item)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self._dropped += 1

    def get(self, timeout: float | None = None) -> OutputItem | None:
        """
        Wait for the next item.

        Returns:
            The item, or None if nothing arrived within ``timeout``
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[OutputItem]:
        """Take every item currently queued, without waiting."""
        items: list[OutputItem] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def __iter__(self) -> Iterator[OutputItem]:
        return iter(self.drain())

    def __len__(self) -> int:
        return self._queue.qsize()


class WatcherService(LoggerMixin):
    """
    Debounced, filtered and classified file change notifications.

    State machine: stopped -> starting -> running -> stopping -> stopped.
    Raw events cross from the source thread into a bounded buffer; when
    the buffer is full the oldest event is dropped (counted in
    ``dropped_count``) so the source never blocks. Output goes to
    :attr:`events`, which keeps the newest ``event_buffer_size`` items, and,
    if given, to the ``on_event`` callback.
    """

    def __init__(
        self,
        config: WatchConfig | None = None,
        on_event: Callable[[OutputItem], Any] | None = None,
        event_filter: EventFilter | None = None,
        source_factory: SourceFactory | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: Watch configuration, defaults to WatchConfig()
            on_event: Called with every published item; may be a coroutine function
            event_filter: Filter to use instead of one built from the config
            source_factory: Builds the primary event source from
                (force_polling, poll_interval_seconds)
        """
        self._config = config or WatchConfig()
        self._on_event = on_event
        self._event_filter = event_filter
        self._source_factory = source_factory or create_event_source
        self._loop: asyncio.AbstractEventLoop | None = None

        self._state = ServiceState.STOPPED
        self._state_changed = threading.Condition(threading.RLock())
        self._source_lock = threading.Lock()
        self._stats = StatsCollector()
        self.events = EventChannel(maxsize=max(self._config.event_buffer_size, 1))

        self._registry: TargetRegistry | None = None
        self._filter: EventFilter | None = None
        self._classifier: Classifier | None = None
        self._debouncer: Debouncer | None = None
        self._source: EventSource | None = None
        self._roots: list[WatchRoot] = []
        self._buffer: queue.Queue[RawEvent] | None = None
        self._failures: queue.SimpleQueue = queue.SimpleQueue()
        self._worker: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def config(self) -> WatchConfig:
        return self._config

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def source_name(self) -> str | None:
        """Name of the active event source (``native`` or ``polling``)."""
        source = self._source
        return source.name if source is not None else None

    @property
    def targets(self) -> tuple[WatchTarget, ...]:
        """Accepted targets once started, configured targets otherwise."""
        if self._registry is not None:
            return self._registry.all()
        return self._config.effective_targets()

    def set_callback(self, callback: Callable[[OutputItem], Any]) -> None:
        """Set or update the event callback."""
        self._on_event = callback

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop for async callbacks."""
        self._loop = loop

    def is_running(self) -> bool:
        return self._state is ServiceState.RUNNING

    def get_stats(self) -> WatcherStats:
        """Get an immutable snapshot of the pipeline counters."""
        return self._stats.snapshot()

    def _set_state(self, state: ServiceState) -> None:
        with self._state_changed:
            self._state = state
            self._state_changed.notify_all()

    # Lifecycle

    def start(self) -> list[InvalidTargetError]:
        """
        Start watching.

        Returns:
            Targets that were rejected; the others are watched

        Raises:
            AlreadyRunningError: service is not stopped
            ConfigurationError: invalid configuration
            InvalidFilterRuleError: malformed user filter rule
            WatchSourceError: no valid target, or no event source available
        """
        with self._state_changed:
            if self._state is not ServiceState.STOPPED:
                raise AlreadyRunningError(f"Watcher service is {self._state.value}")
            self._state = ServiceState.STARTING

        try:
            warnings = self._build_pipeline()
            self._set_state(ServiceState.RUNNING)
            self._worker = threading.Thread(
                target=self._run,
                args=(self._stop_event, self._buffer, self._failures),
                name="zeami-watcher-worker",
                daemon=True,
            )
            self._worker.start()
        except Exception:
            self._teardown()
            self._set_state(ServiceState.STOPPED)
            raise

        self.log.info(
            "watcher_started",
            source=self.source_name,
            roots=[str(root.path) for root in self._roots],
            debounce_ms=self._config.debounce_ms,
            rejected=len(warnings),
        )
        return warnings

    def _build_pipeline(self) -> list[InvalidTargetError]:
        config = self._config
        config.validate()
        user_rules = config.compiled_filter_rules()

        registry = TargetRegistry(config.project_root)
        warnings = registry.register_all(config.effective_targets())
        roots = registry.watch_roots()
        if not roots:
            raise WatchSourceError("No valid watch targets", source="registry")

        self._registry = registry
        self._roots = roots
        self._filter = self._event_filter or EventFilter(
            user_rules,
            project_root=config.project_root,
            log_filtered=config.verbose,
        )
        self._classifier = Classifier(config.project_root)
        self._debouncer = Debouncer(config.debounce_ms, self._on_settled)
        self._buffer = queue.Queue(maxsize=config.event_buffer_size)
        # Per run: a worker left over from a fatal stop keeps its own
        self._failures = queue.SimpleQueue()
        self._stop_event = threading.Event()

        source = self._source_factory(config.force_polling, config.poll_interval_seconds)
        try:
            source.subscribe(roots, self._emitter_for(source))
        except WatchSourceError as e:
            if isinstance(source, PollingEventSource) or not config.poll_fallback:
                raise
            self.log.warning("native_source_unavailable", error=str(e))
            source = self._subscribe_polling()
            self._publish(WatchErrorEvent(e, fatal=False, fallback=True))
        self._source = source
        return warnings

    def _subscribe_polling(self) -> PollingEventSource:
        source = PollingEventSource(interval=self._config.poll_interval_seconds)
        source.subscribe(self._roots, self._emitter_for(source))
        return source

    def stop(self) -> None:
        """
        Stop watching. Idempotent.

        Tears down the source, cancels every pending debounce timer and
        waits for in-flight classification. Nothing is published after
        this returns; events still inside their quiet window are dropped.
        """
        with self._state_changed:
            while self._state is not ServiceState.RUNNING:
                if self._state is ServiceState.STOPPED:
                    return
                if threading.current_thread() is self._worker:
                    return
                # Another thread is starting or tearing down; wait for it
                self._state_changed.wait()
            self._state = ServiceState.STOPPING
            self._state_changed.notify_all()

        self.log.info("watcher_stopping")
        discarded = self._teardown()
        self._set_state(ServiceState.STOPPED)
        self.log.info("watcher_stopped", discarded=discarded, **self._stats.snapshot().to_dict())

    def _teardown(self) -> int:
        self._stop_event.set()
        with self._source_lock:
            source, self._source = self._source, None
        if source is not None:
            source.unsubscribe()

        worker, self._worker = self._worker, None
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=5.0)

        if self._debouncer is None:
            return 0
        return self._debouncer.stop()

    # Source thread

    def _emitter_for(self, source: EventSource) -> Callable[[RawEvent | WatchSourceError], None]:
        buffer, failures = self._buffer, self._failures

        def emit(item: RawEvent | WatchSourceError) -> None:
            if isinstance(item, WatchSourceError):
                failures.put((source, item))
            else:
                self._enqueue(buffer, item)

        return emit

    def _enqueue(self, buffer: queue.Queue, event: RawEvent) -> None:
        while True:
            try:
                buffer.put_nowait(event)
                return
            except queue.Full:
                try:
                    buffer.get_nowait()
                except queue.Empty:
                    continue
                self._stats.record_dropped()

    # Worker thread

    def _run(self, stop_event: threading.Event, buffer: queue.Queue, failures: queue.SimpleQueue) -> None:
        next_check = time.monotonic() + LIVENESS_INTERVAL
        while not stop_event.is_set():
            try:
                source, error = failures.get_nowait()
            except queue.Empty:
                pass
            else:
                self._handle_source_failure(source, error)
                continue

            try:
                event = buffer.get(timeout=WORKER_POLL_TIMEOUT)
            except queue.Empty:
                pass
            else:
                self._process(event)

            if time.monotonic() >= next_check:
                next_check = time.monotonic() + LIVENESS_INTERVAL
                self._check_source(failures)

    def _process(self, event: RawEvent) -> None:
        passed = not self._filter.should_suppress(event.path)
        self._stats.record_raw(passed)
        if passed and not self._debouncer.submit(event):
            self.log.debug("event_rejected_stopping", path=str(event.path))

    def _check_source(self, failures: queue.SimpleQueue) -> None:
        source = self._source
        if source is not None and not source.is_alive():
            failures.put(
                (source, WatchSourceError(f"{source.name} event source stopped unexpectedly", source.name))
            )

    def _handle_source_failure(self, source: EventSource, error: WatchSourceError) -> None:
        if source is not self._source:
            # Already replaced or torn down
            return

        self._stats.record_error()
        self.log.error("watch_source_failed", source=error.source, error=str(error))

        if self._config.poll_fallback and not isinstance(source, PollingEventSource):
            try:
                if self._switch_to_polling(source):
                    self._publish(WatchErrorEvent(error, fatal=False, fallback=True))
                return
            except WatchSourceError as e:
                error = e
        self._fail(error)

    def _switch_to_polling(self, failed: EventSource) -> bool:
        with self._source_lock:
            if self._source is not failed or self._stop_event.is_set():
                return False
            failed.unsubscribe()
            self._source = None
            self._source = self._subscribe_polling()
        self.log.warning("switched_to_polling", interval=self._config.poll_interval_seconds)
        return True

    def _fail(self, error: WatchSourceError) -> None:
        with self._state_changed:
            if self._state is not ServiceState.RUNNING:
                return
            self._state = ServiceState.STOPPING
            self._state_changed.notify_all()

        self._teardown()
        self._publish(WatchErrorEvent(error, fatal=True))
        self._set_state(ServiceState.STOPPED)
        self.log.error("watcher_terminated", error=str(error))

    # Debounce timer threads

    def _on_settled(self, entry: DebounceEntry) -> None:
        event = self._classifier.classify(
            entry.key,
            entry.kind,
            coalesced_count=entry.coalesced_count,
            first_seen_at=entry.first_seen_at,
            last_seen_at=entry.last_seen_at,
        )
        self._stats.record_emitted()
        self.log.debug(
            "event_emitted",
            path=str(event.path),
            kind=event.kind.value,
            category=event.category.value,
            coalesced_count=event.coalesced_count,
        )
        self._publish(event)

    def _publish(self, item: OutputItem) -> None:
        self.events.put(item)
        if self._on_event is None:
            return
        try:
            if inspect.iscoroutinefunction(self._on_event):
                if self._loop is not None:
                    asyncio.run_coroutine_threadsafe(self._on_event(item), self._loop)
                else:
                    asyncio.run(self._on_event(item))
            else:
                self._on_event(item)
        except Exception as e:
            self._stats.record_error()
            self.log.error("event_callback_failed", error=str(e))

    def __enter__(self) -> "WatcherService":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
