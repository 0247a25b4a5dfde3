"""
Zeami Watcher Classifier.

Tags a settled change with a semantic category from the shape of its path.
Requires Python 3.11+.
"""

import fnmatch
import time
from pathlib import Path, PurePath

from watcher.models import ClassifiedEvent, EventCategory, EventKind

DEFAULT_SOURCE_DIRS: tuple[str, ...] = ("src", "lib")

DEFAULT_CONFIG_FILES: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "Cargo.toml",
    "pyproject.toml",
    "vite.config.*",
    ".env",
    ".env.*",
    "*.toml",
    "*.json",
    "*.yaml",
    "*.yml",
)

CLAUDE_DIR = ".claude"
GIT_DIR = ".git"


class Classifier:
    """
    Deterministic path-to-category mapping.

    Rules are tried in a fixed order and the first one that applies wins:
    Claude state, source tree, root configuration file, git head
    reference, then generic.
    """

    def __init__(
        self,
        project_root: Path,
        source_dirs: tuple[str, ...] = DEFAULT_SOURCE_DIRS,
        config_files: tuple[str, ...] = DEFAULT_CONFIG_FILES,
    ) -> None:
        """
        Initialize the classifier.

        Args:
            project_root: Root that source dirs and config files are relative to
            source_dirs: Top-level directories holding source code
            config_files: Glob patterns of configuration file names at the root
        """
        self._project_root = Path(project_root).resolve()
        self._source_dirs = frozenset(source_dirs)
        self._config_files = tuple(config_files)

    @property
    def project_root(self) -> Path:
        return self._project_root

    def _relative_parts(self, path: Path) -> tuple[str, ...]:
        try:
            return path.relative_to(self._project_root).parts
        except ValueError:
            # Outside the project: fall back to the components alone
            return PurePath(path).parts[1:] if path.anchor else path.parts

    def category_for(self, path: Path) -> EventCategory:
        """Category of a change on ``path``."""
        parts = self._relative_parts(Path(path))
        if not parts:
            return EventCategory.GENERIC

        if CLAUDE_DIR in parts:
            return EventCategory.CLAUDE_STATE_CHANGED
        if len(parts) > 1 and parts[0] in self._source_dirs:
            return EventCategory.SOURCE_CHANGED
        if len(parts) == 1 and self._is_config_name(parts[0]):
            return EventCategory.CONFIG_CHANGED
        if self._is_head_reference(parts):
            return EventCategory.GIT_COMMIT
        return EventCategory.GENERIC

    def _is_config_name(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self._config_files)

    @staticmethod
    def _is_head_reference(parts: tuple[str, ...]) -> bool:
        if GIT_DIR not in parts:
            return False
        tail = parts[parts.index(GIT_DIR) + 1:]
        if tail == ("HEAD",):
            return True
        return len(tail) > 2 and tail[0] == "refs" and tail[1] == "heads"

    def determine_source(self, path: Path) -> str:
        """
        Coarse origin of a change, used by the UI to group events.

        Returns:
            One of ``claude``, ``git``, ``source``, ``tests`` or ``project``
        """
        parts = self._relative_parts(Path(path))
        if CLAUDE_DIR in parts:
            return "claude"
        if GIT_DIR in parts:
            return "git"
        if any(part in self._source_dirs for part in parts[:-1]):
            return "source"
        if "tests" in parts[:-1]:
            return "tests"
        return "project"

    def classify(
        self,
        path: Path,
        kind: EventKind,
        coalesced_count: int = 1,
        first_seen_at: float | None = None,
        last_seen_at: float | None = None,
    ) -> ClassifiedEvent:
        """
        Build the externally visible event for a settled change.

        Exactly one category is assigned.
        """
        path = Path(path)
        now = time.monotonic()
        return ClassifiedEvent(
            path=path,
            kind=kind,
            category=self.category_for(path),
            coalesced_count=coalesced_count,
            source=self.determine_source(path),
            first_seen_at=now if first_seen_at is None else first_seen_at,
            last_seen_at=now if last_seen_at is None else last_seen_at,
        )
