"""
Zeami Watcher Target Registry.

Validates watch targets and computes the set of roots to subscribe.
Requires Python 3.11+.
"""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from utils.logger import LoggerMixin
from watcher.config import WatchTarget
from watcher.errors import InvalidTargetError


@dataclass(frozen=True)
class WatchRoot:
    """A canonical directory handed to an event source."""

    path: Path
    recursive: bool
    target: WatchTarget


class TargetRegistry(LoggerMixin):
    """
    Holds the roots to observe.

    Paths are canonicalised on registration. Registering the same
    directory twice keeps one entry; a target nested inside a recursive
    target is accepted but is not subscribed on its own, so the event
    source never reports the same change twice.
    """

    def __init__(self, project_root: Path) -> None:
        self._project_root = Path(project_root).resolve()
        self._roots: dict[Path, WatchRoot] = {}

    @property
    def project_root(self) -> Path:
        return self._project_root

    def register(self, target: WatchTarget) -> Path:
        """
        Validate and add a target.

        Args:
            target: Target whose path may be relative to the project root

        Returns:
            The canonical path that was registered

        Raises:
            InvalidTargetError: path missing, not a directory or unreadable
        """
        raw = target.resolve_path(self._project_root)
        if not raw.exists():
            raise InvalidTargetError(raw, "path does not exist")
        canonical = raw.resolve()
        if not canonical.is_dir():
            raise InvalidTargetError(canonical, "path is not a directory")
        if not os.access(canonical, os.R_OK | os.X_OK):
            raise InvalidTargetError(canonical, "path is not readable")

        existing = self._roots.get(canonical)
        if existing is not None:
            if target.recursive and not existing.recursive:
                self._roots[canonical] = WatchRoot(canonical, True, target)
            self.log.debug("duplicate_target", path=str(canonical))
            return canonical

        self._roots[canonical] = WatchRoot(canonical, target.recursive, target)
        self.log.debug(
            "target_registered",
            path=str(canonical),
            recursive=target.recursive,
            priority=target.priority,
        )
        return canonical

    def register_all(self, targets: Iterable[WatchTarget]) -> list[InvalidTargetError]:
        """
        Register every target, collecting failures instead of raising.

        Returns:
            One InvalidTargetError per rejected target
        """
        warnings: list[InvalidTargetError] = []
        for target in targets:
            try:
                self.register(target)
            except InvalidTargetError as e:
                self.log.warning("invalid_target", path=str(e.path), reason=e.reason)
                warnings.append(e)
        return warnings

    def all(self) -> tuple[WatchTarget, ...]:
        """Accepted targets in registration order."""
        return tuple(root.target for root in self._roots.values())

    def watch_roots(self) -> list[WatchRoot]:
        """
        Minimal set of roots to subscribe.

        Roots covered by a recursive ancestor are dropped.
        """
        roots = sorted(self._roots.values(), key=lambda r: len(r.path.parts))
        selected: list[WatchRoot] = []
        for root in roots:
            covered = any(
                parent.recursive and root.path.is_relative_to(parent.path)
                for parent in selected
            )
            if covered:
                self.log.debug("target_redundant", path=str(root.path))
                continue
            selected.append(root)
        return selected

    def __len__(self) -> int:
        return len(self._roots)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and Path(path).resolve() in self._roots
