"""
Zeami Watcher Data Models.

Defines the events that flow through the watcher pipeline.
Requires Python 3.11+.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from watcher.errors import WatchSourceError


class EventKind(str, Enum):
    """Kinds of raw file system changes."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class EventCategory(str, Enum):
    """Semantic category attached to a settled event."""

    CLAUDE_STATE_CHANGED = "claude_state_changed"
    SOURCE_CHANGED = "source_changed"
    CONFIG_CHANGED = "config_changed"
    GIT_COMMIT = "git_commit"
    GENERIC = "generic"

    @property
    def is_high_priority(self) -> bool:
        """Claude state and git commits are delivered ahead of everything else."""
        return self in (EventCategory.CLAUDE_STATE_CHANGED, EventCategory.GIT_COMMIT)


@dataclass(frozen=True)
class RawEvent:
    """A single change notification as delivered by an event source."""

    path: Path
    kind: EventKind
    observed_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class ClassifiedEvent:
    """
    A debounced, filtered and classified change.

    Produced exactly once per settled debounce window.
    """

    path: Path
    kind: EventKind
    category: EventCategory
    coalesced_count: int = 1
    source: str = "project"
    first_seen_at: float = 0.0
    last_seen_at: float = 0.0
    timestamp: float = field(default_factory=time.time)

    @property
    def is_high_priority(self) -> bool:
        """Check if this event is high priority."""
        return self.category.is_high_priority

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-safe payload for the UI bridge."""
        return {
            "event_type": self.category.value,
            "kind": self.kind.value,
            "path": str(self.path),
            "source": self.source,
            "coalesced_count": self.coalesced_count,
            "timestamp": self.timestamp,
            "high_priority": self.is_high_priority,
        }


@dataclass(frozen=True)
class WatchErrorEvent:
    """Source failure published on the same stream as classified events."""

    error: WatchSourceError
    fatal: bool
    fallback: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-safe payload for the UI bridge."""
        return {
            "event_type": "error",
            "message": str(self.error),
            "source": self.error.source,
            "fatal": self.fatal,
            "fallback": self.fallback,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class WatcherStats:
    """Immutable snapshot of the pipeline counters."""

    raw_count: int = 0
    filtered_out_count: int = 0
    passed_filter_count: int = 0
    emitted_count: int = 0
    dropped_count: int = 0
    error_count: int = 0

    @property
    def filter_efficiency(self) -> float:
        """Percentage of raw events suppressed by the filter."""
        if self.raw_count == 0:
            return 0.0
        return self.filtered_out_count / self.raw_count * 100.0

    @property
    def throughput(self) -> float:
        """Percentage of events passing the filter that were emitted."""
        if self.passed_filter_count == 0:
            return 0.0
        return self.emitted_count / self.passed_filter_count * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_count": self.raw_count,
            "filtered_out_count": self.filtered_out_count,
            "passed_filter_count": self.passed_filter_count,
            "emitted_count": self.emitted_count,
            "dropped_count": self.dropped_count,
            "error_count": self.error_count,
            "filter_efficiency": self.filter_efficiency,
            "throughput": self.throughput,
        }
