"""
Zeami Watcher Event Filter.

Decides whether a changed path is noise (build output, caches, VCS
internals, editor droppings) and should never reach the debouncer.
Requires Python 3.11+.
"""

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath

from utils.logger import LoggerMixin
from watcher.errors import InvalidFilterRuleError


class RuleType(str, Enum):
    """How a rule pattern is compared against a path."""

    SUBSTRING = "substring"
    GLOB = "glob"
    PATH_SEGMENT = "path_segment"
    PREFIX = "prefix"


class FilterReason(str, Enum):
    """Why a rule exists. Used for stats and debug logging."""

    BUILD_ARTIFACT = "build_artifact"
    TEMPORARY_FILE = "temporary_file"
    LOCK_FILE = "lock_file"
    IDE = "ide"
    OS_FILE = "os_file"
    GIT_INTERNAL = "git_internal"
    LOG_FILE = "log_file"
    TEST_ARTIFACT = "test_artifact"
    PYTHON_CACHE = "python_cache"
    HIDDEN = "hidden"
    CUSTOM = "custom"


_UNTERMINATED_CLASS = re.compile(r"\[(?![^\]]*\])")


@dataclass(frozen=True)
class FilterRule:
    """
    A single exclusion predicate.

    Rules are validated when they are built, so a bad pattern fails
    configuration instead of failing while events are flowing.
    """

    pattern: str
    rule_type: RuleType = RuleType.SUBSTRING
    reason: FilterReason = FilterReason.CUSTOM
    exceptions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        try:
            rule_type = RuleType(self.rule_type)
        except ValueError:
            raise InvalidFilterRuleError(
                str(self.pattern), f"unknown rule type {self.rule_type!r}"
            ) from None
        object.__setattr__(self, "rule_type", rule_type)

        if not isinstance(self.pattern, str) or not self.pattern.strip():
            raise InvalidFilterRuleError(str(self.pattern), "pattern is empty")
        if "\x00" in self.pattern:
            raise InvalidFilterRuleError(self.pattern, "pattern contains a NUL byte")
        segment_like = rule_type in (RuleType.PATH_SEGMENT, RuleType.PREFIX)
        if segment_like and ("/" in self.pattern or "\\" in self.pattern):
            raise InvalidFilterRuleError(
                self.pattern, "a path segment cannot contain a separator"
            )
        object.__setattr__(self, "exceptions", tuple(self.exceptions))
        if rule_type is RuleType.GLOB and _UNTERMINATED_CLASS.search(self.pattern):
            raise InvalidFilterRuleError(self.pattern, "unterminated character class")

    @classmethod
    def substring(cls, pattern: str, reason: FilterReason = FilterReason.CUSTOM) -> "FilterRule":
        return cls(pattern, RuleType.SUBSTRING, reason)

    @classmethod
    def glob(cls, pattern: str, reason: FilterReason = FilterReason.CUSTOM) -> "FilterRule":
        return cls(pattern, RuleType.GLOB, reason)

    @classmethod
    def segment(cls, pattern: str, reason: FilterReason = FilterReason.CUSTOM) -> "FilterRule":
        return cls(pattern, RuleType.PATH_SEGMENT, reason)

    @classmethod
    def parse(cls, spec: str) -> "FilterRule":
        """
        Parse the ``type:pattern`` string form used in settings.

        ``"glob:*.bak"`` and ``"path_segment:vendor"`` select a rule type;
        a bare pattern is a substring rule.

        Raises:
            InvalidFilterRuleError: unknown type prefix or bad pattern
        """
        prefix, sep, rest = spec.partition(":")
        if sep and prefix.strip().lower() in {t.value for t in RuleType}:
            return cls(rest.strip(), RuleType(prefix.strip().lower()))
        if sep and prefix.strip().isidentifier() and not rest.startswith(("/", "\\")):
            raise InvalidFilterRuleError(spec, f"unknown rule type {prefix!r}")
        return cls(spec.strip(), RuleType.SUBSTRING)

    def matches(self, relative: PurePath) -> bool:
        """Check this rule against a path relative to the project root."""
        posix = relative.as_posix()
        if self.rule_type is RuleType.SUBSTRING:
            return self.pattern in "/" + posix
        if self.rule_type is RuleType.PATH_SEGMENT:
            return self.pattern in relative.parts
        if self.rule_type is RuleType.PREFIX:
            return any(
                part.startswith(self.pattern) and not self._is_exception(part)
                for part in relative.parts
            )
        if "/" in self.pattern:
            return fnmatch.fnmatch(posix, self.pattern)
        return fnmatch.fnmatch(relative.name, self.pattern)

    def _is_exception(self, part: str) -> bool:
        # ".env" also covers ".env.local"
        return any(part == name or part.startswith(name + ".") for name in self.exceptions)


HIDDEN_EXCEPTIONS: tuple[str, ...] = (".claude", ".git", ".env", ".gitignore", ".github")


def _build(reason: FilterReason, rule_type: RuleType, *patterns: str) -> list[FilterRule]:
    return [FilterRule(p, rule_type, reason) for p in patterns]


BUILTIN_RULES: tuple[FilterRule, ...] = tuple(
    [
        *_build(
            FilterReason.BUILD_ARTIFACT,
            RuleType.PATH_SEGMENT,
            "node_modules", "target", "dist", "build", ".next", "out",
        ),
        *_build(
            FilterReason.TEMPORARY_FILE,
            RuleType.GLOB,
            "*.tmp", "*.temp", "*.swp", "*.swo", "~*", "*~",
        ),
        *_build(
            FilterReason.LOCK_FILE,
            RuleType.GLOB,
            "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "Cargo.lock", "poetry.lock",
        ),
        *_build(FilterReason.IDE, RuleType.PATH_SEGMENT, ".idea", ".vscode", ".vs"),
        *_build(FilterReason.IDE, RuleType.GLOB, "*.iml"),
        *_build(FilterReason.OS_FILE, RuleType.GLOB, ".DS_Store", "Thumbs.db", "desktop.ini"),
        # Object store, reflogs and lock files; HEAD and refs stay visible
        *_build(FilterReason.GIT_INTERNAL, RuleType.SUBSTRING, "/.git/objects/", "/.git/logs/"),
        *_build(FilterReason.GIT_INTERNAL, RuleType.GLOB, ".git/*.lock", "*/.git/*.lock"),
        *_build(FilterReason.LOG_FILE, RuleType.GLOB, "*.log"),
        *_build(
            FilterReason.TEST_ARTIFACT,
            RuleType.PATH_SEGMENT,
            "test-results", "playwright-report", "coverage",
        ),
        *_build(
            FilterReason.PYTHON_CACHE,
            RuleType.PATH_SEGMENT,
            "__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache",
        ),
        *_build(FilterReason.PYTHON_CACHE, RuleType.GLOB, "*.pyc"),
        # Dot-prefixed names, except the ones the classifier depends on
        FilterRule(
            ".",
            RuleType.PREFIX,
            FilterReason.HIDDEN,
            exceptions=HIDDEN_EXCEPTIONS,
        ),
    ]
)


class EventFilter(LoggerMixin):
    """
    Ordered, short-circuiting exclusion filter.

    Built-in rules are always evaluated first, user rules after them.
    The first matching rule suppresses the path; a path that matches
    nothing passes.
    """

    def __init__(
        self,
        user_rules: tuple[FilterRule, ...] | list[FilterRule] = (),
        project_root: Path | None = None,
        log_filtered: bool = False,
    ) -> None:
        """
        Initialize the filter.

        Args:
            user_rules: Extra rules appended after the built-in set
            project_root: Paths below this root are matched relative to it
            log_filtered: Log every suppressed path at debug level
        """
        self._user_rules = tuple(user_rules)
        self._rules = BUILTIN_RULES + self._user_rules
        self._project_root = project_root.resolve() if project_root is not None else None
        self._log_filtered = log_filtered

    @property
    def rules(self) -> tuple[FilterRule, ...]:
        return self._rules

    @property
    def user_rules(self) -> tuple[FilterRule, ...]:
        return self._user_rules

    def _relative(self, path: Path) -> PurePath:
        if self._project_root is not None:
            try:
                return path.relative_to(self._project_root)
            except ValueError:
                pass
        if path.anchor:
            return PurePath(*path.parts[1:])
        return path

    def match(self, path: Path) -> FilterRule | None:
        """Return the first rule suppressing ``path``, if any."""
        relative = self._relative(Path(path))
        for rule in self._rules:
            if rule.matches(relative):
                return rule
        return None

    def should_suppress(self, path: Path) -> bool:
        """Check whether an event on ``path`` is noise."""
        rule = self.match(path)
        if rule is None:
            return False
        if self._log_filtered:
            self.log.debug(
                "event_suppressed",
                path=str(path),
                pattern=rule.pattern,
                reason=rule.reason.value,
            )
        return True

    def should_watch(self, path: Path) -> bool:
        """Inverse of :meth:`should_suppress`."""
        return not self.should_suppress(path)

    def stats(self) -> dict[str, int]:
        """Count rules per reason."""
        counts = {reason.value: 0 for reason in FilterReason}
        for rule in self._rules:
            counts[rule.reason.value] += 1
        counts["total"] = len(self._rules)
        return counts
