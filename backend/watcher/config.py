"""
Zeami Watcher Configuration Values.

Watch targets, the watch configuration and its named presets.
Presets are plain values, built by functions, never mutated at run time.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from watcher.errors import ConfigurationError
from watcher.filters import FilterRule

if TYPE_CHECKING:
    from utils.config import WatcherSettings


MAX_DEBOUNCE_MS = 10_000


@dataclass(frozen=True)
class WatchTarget:
    """A directory (or project root) to observe."""

    path: Path
    description: str = ""
    recursive: bool = True
    priority: int = 5

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def resolve_path(self, project_root: Path) -> Path:
        """Resolve path relative to project root."""
        return project_root / self.path

    @classmethod
    def claude_dir(cls) -> "WatchTarget":
        """Claude Code configuration and state."""
        return cls(Path(".claude"), "Claude Code configuration and state", True, 10)

    @classmethod
    def src_dir(cls) -> "WatchTarget":
        """Source code for test re-runs."""
        return cls(Path("src"), "Source code for test re-runs", True, 8)

    @classmethod
    def git_dir(cls) -> "WatchTarget":
        """Branch heads, for commit detection."""
        return cls(Path(".git/refs/heads"), "Git commit detection", True, 7)

    @classmethod
    def config_files(cls) -> "WatchTarget":
        """Configuration files at the project root."""
        return cls(Path("."), "Configuration files", False, 6)

    @classmethod
    def tests_dir(cls) -> "WatchTarget":
        return cls(Path("tests"), "Test files", True, 5)


def default_targets() -> tuple[WatchTarget, ...]:
    return (
        WatchTarget.claude_dir(),
        WatchTarget.src_dir(),
        WatchTarget.git_dir(),
        WatchTarget.config_files(),
    )


@dataclass(frozen=True)
class WatchConfig:
    """
    Configuration for the file watcher service.

    Supplied once when the service is constructed.
    Use ``dataclasses.replace`` (or :meth:`with_changes`) to derive variants.
    """

    targets: tuple[WatchTarget, ...] = field(default_factory=default_targets)
    debounce_ms: int = 100
    recursive: bool = True
    event_buffer_size: int = 1000
    verbose: bool = False
    project_root: Path = field(default_factory=Path.cwd)
    filter_rules: tuple[FilterRule | str, ...] = ()
    poll_fallback: bool = True
    force_polling: bool = False
    poll_interval_ms: int = 1000

    def __post_init__(self) -> None:
        object.__setattr__(self, "targets", tuple(self.targets))
        object.__setattr__(self, "filter_rules", tuple(self.filter_rules))
        object.__setattr__(self, "project_root", Path(self.project_root))

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    def with_changes(self, **changes) -> "WatchConfig":
        return replace(self, **changes)

    def effective_targets(self) -> tuple[WatchTarget, ...]:
        """Targets with the global ``recursive`` switch applied."""
        if self.recursive:
            return self.targets
        return tuple(replace(t, recursive=False) for t in self.targets)

    def compiled_filter_rules(self) -> tuple[FilterRule, ...]:
        """
        User filter rules, with string specs parsed.

        Raises:
            InvalidFilterRuleError: malformed rule
        """
        return tuple(
            rule if isinstance(rule, FilterRule) else FilterRule.parse(rule)
            for rule in self.filter_rules
        )

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ConfigurationError: if any value is out of range
            InvalidFilterRuleError: malformed user filter rule
        """
        if not self.targets:
            raise ConfigurationError("At least one watch target must be specified")
        if self.debounce_ms <= 0:
            raise ConfigurationError("Debounce delay must be greater than 0")
        if self.debounce_ms > MAX_DEBOUNCE_MS:
            raise ConfigurationError("Debounce delay should not exceed 10 seconds")
        if self.event_buffer_size < 1:
            raise ConfigurationError("Event buffer size must be at least 1")
        if self.poll_interval_ms < 10:
            raise ConfigurationError("Poll interval must be at least 10ms")
        self.compiled_filter_rules()

    @classmethod
    def from_settings(cls, settings: "WatcherSettings") -> "WatchConfig":
        """
        Build a configuration from environment-driven settings.

        The preset supplies the defaults; explicit settings override them.

        Raises:
            ConfigurationError: unknown preset
        """
        try:
            preset = WatcherPreset(settings.preset.lower())
        except ValueError:
            raise ConfigurationError(f"Unknown watcher preset: {settings.preset!r}") from None

        config = preset_config(preset, project_root=settings.project_root)
        overrides: dict = {
            "recursive": settings.recursive,
            "poll_fallback": settings.poll_fallback,
            "force_polling": settings.force_polling,
            "poll_interval_ms": settings.poll_interval_ms,
            "filter_rules": tuple(settings.ignore_patterns),
        }
        if settings.debounce_ms is not None:
            overrides["debounce_ms"] = settings.debounce_ms
        if settings.event_buffer_size is not None:
            overrides["event_buffer_size"] = settings.event_buffer_size
        if settings.verbose is not None:
            overrides["verbose"] = settings.verbose
        return replace(config, **overrides)


class WatcherPreset(str, Enum):
    """Named configurations."""

    DEFAULT = "default"
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


def preset_config(preset: WatcherPreset | str, project_root: Path | None = None) -> WatchConfig:
    """
    Get a preset configuration.

    Development reacts faster and logs more, Production is conservative
    and quiet, Testing narrows the targets to source and test trees.
    """
    preset = WatcherPreset(preset)
    base = WatchConfig(project_root=project_root or Path.cwd())

    if preset is WatcherPreset.DEVELOPMENT:
        return replace(base, debounce_ms=50, verbose=True)
    if preset is WatcherPreset.PRODUCTION:
        return replace(base, debounce_ms=200, verbose=False)
    if preset is WatcherPreset.TESTING:
        return replace(
            base,
            targets=(WatchTarget.src_dir(), WatchTarget.tests_dir()),
            debounce_ms=100,
        )
    return base
