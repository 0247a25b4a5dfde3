"""
Zeami Watcher Errors.

Exception hierarchy for the file watcher core.
Requires Python 3.11+.
"""

from pathlib import Path


class WatcherError(Exception):
    """Base class for every error raised by the watcher core."""


class ConfigurationError(WatcherError):
    """The watch configuration is unusable (bad debounce, no targets, ...)."""


class InvalidTargetError(WatcherError):
    """A watch target path does not exist or cannot be read."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Invalid watch target {self.path}: {reason}")


class InvalidFilterRuleError(ConfigurationError):
    """A user filter rule cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid filter rule {pattern!r}: {reason}")


class WatchSourceError(WatcherError):
    """The OS event source is unavailable or crashed."""

    def __init__(self, message: str, source: str = "native") -> None:
        self.source = source
        super().__init__(message)


class AlreadyRunningError(WatcherError):
    """start() was called while the service was not stopped."""
