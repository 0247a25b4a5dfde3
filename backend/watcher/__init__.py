"""
Zeami Watcher Package.

Debounced, filtered and classified file system change notifications.
Requires Python 3.11+.
"""

from watcher.classifier import Classifier
from watcher.config import WatchConfig, WatcherPreset, WatchTarget, preset_config
from watcher.debouncer import DebounceEntry, Debouncer
from watcher.errors import (
    AlreadyRunningError,
    ConfigurationError,
    InvalidFilterRuleError,
    InvalidTargetError,
    WatcherError,
    WatchSourceError,
)
from watcher.filters import EventFilter, FilterReason, FilterRule, RuleType
from watcher.models import (
    ClassifiedEvent,
    EventCategory,
    EventKind,
    RawEvent,
    WatchErrorEvent,
    WatcherStats,
)
from watcher.registry import TargetRegistry, WatchRoot
from watcher.service import EventChannel, ServiceState, WatcherService
from watcher.sources import EventSource, NativeEventSource, PollingEventSource
from watcher.stats import StatsCollector

__all__ = [
    "AlreadyRunningError",
    "ClassifiedEvent",
    "Classifier",
    "ConfigurationError",
    "DebounceEntry",
    "Debouncer",
    "EventCategory",
    "EventChannel",
    "EventFilter",
    "EventKind",
    "EventSource",
    "FilterReason",
    "FilterRule",
    "InvalidFilterRuleError",
    "InvalidTargetError",
    "NativeEventSource",
    "PollingEventSource",
    "RawEvent",
    "RuleType",
    "ServiceState",
    "StatsCollector",
    "TargetRegistry",
    "WatchConfig",
    "WatchErrorEvent",
    "WatchRoot",
    "WatchSourceError",
    "WatchTarget",
    "WatcherError",
    "WatcherPreset",
    "WatcherService",
    "WatcherStats",
    "preset_config",
]
