"""
Zeami Watcher Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import time
from collections.abc import Callable
from pathlib import Path

import pytest

from watcher.config import WatchConfig, WatchTarget
from watcher.errors import WatchSourceError
from watcher.models import EventKind, RawEvent
from watcher.registry import WatchRoot
from watcher.sources import EventSource, SourceEmit


class FakeEventSource(EventSource):
    """
    Event source driven by the test.

    ``push`` delivers a raw event synchronously, ``fail`` reports a
    run-time failure, ``die`` makes the liveness check fail.
    """

    name = "native"

    def __init__(self, fail_subscribe: bool = False) -> None:
        self.fail_subscribe = fail_subscribe
        self.roots: list[WatchRoot] = []
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self._emit: SourceEmit | None = None
        self._alive = False

    def subscribe(self, roots: list[WatchRoot], emit: SourceEmit) -> None:
        self.subscribe_calls += 1
        if self.fail_subscribe:
            raise WatchSourceError("inotify watch limit reached")
        self.roots = list(roots)
        self._emit = emit
        self._alive = True

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self._alive = False
        self._emit = None

    def is_alive(self) -> bool:
        return self._alive

    def push(self, path: Path, kind: EventKind = EventKind.MODIFIED) -> None:
        if self._emit is not None:
            self._emit(RawEvent(Path(path), kind))

    def fail(self, message: str = "observer crashed") -> None:
        if self._emit is not None:
            self._emit(WatchSourceError(message))

    def die(self) -> None:
        self._alive = False


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project tree with the directories the default targets expect."""
    root = tmp_path / "project"
    for directory in (
        ".claude",
        "src",
        "tests",
        ".git/refs/heads",
        "node_modules/left-pad",
        "dist",
    ):
        (root / directory).mkdir(parents=True)

    (root / ".claude" / "settings.json").write_text("{}")
    (root / "src" / "main.py").write_text("print('hello')\n")
    (root / "tests" / "test_main.py").write_text("def test_ok():\n    pass\n")
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / ".git" / "refs" / "heads" / "main").write_text("0" * 40 + "\n")
    (root / "package.json").write_text('{"name": "demo"}')
    (root / "node_modules" / "left-pad" / "index.js").write_text("module.exports = 1;\n")
    return root.resolve()


@pytest.fixture
def fake_source() -> FakeEventSource:
    """Create a controllable event source."""
    return FakeEventSource()


@pytest.fixture
def fast_config(project: Path) -> WatchConfig:
    """Configuration with a short debounce window over the sample project."""
    return WatchConfig(
        targets=(WatchTarget.claude_dir(), WatchTarget.src_dir(), WatchTarget.git_dir()),
        debounce_ms=50,
        project_root=project,
        poll_interval_ms=50,
    )


@pytest.fixture
def wait() -> Callable[..., bool]:
    """Poll a predicate until it holds, see :func:`wait_until`."""
    return wait_until


@pytest.fixture
def failing_source() -> FakeEventSource:
    """Create a source whose subscription always fails."""
    return FakeEventSource(fail_subscribe=True)
