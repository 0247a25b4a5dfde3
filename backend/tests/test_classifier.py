"""
Tests for the Classifier.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from watcher.classifier import Classifier
from watcher.models import EventCategory, EventKind

ROOT = Path("/work/app")


class TestClassifier:
    """Test cases for Classifier."""

    @pytest.fixture
    def classifier(self) -> Classifier:
        """Create a classifier for a fake project."""
        return Classifier(ROOT)

    @pytest.mark.parametrize(
        "relative, category",
        [
            (".claude/settings.json", EventCategory.CLAUDE_STATE_CHANGED),
            (".claude/todos/today.md", EventCategory.CLAUDE_STATE_CHANGED),
            ("src/main.py", EventCategory.SOURCE_CHANGED),
            ("src/components/App.tsx", EventCategory.SOURCE_CHANGED),
            ("lib/util.rs", EventCategory.SOURCE_CHANGED),
            ("package.json", EventCategory.CONFIG_CHANGED),
            ("tsconfig.json", EventCategory.CONFIG_CHANGED),
            ("Cargo.toml", EventCategory.CONFIG_CHANGED),
            ("pyproject.toml", EventCategory.CONFIG_CHANGED),
            ("vite.config.ts", EventCategory.CONFIG_CHANGED),
            (".env", EventCategory.CONFIG_CHANGED),
            (".env.local", EventCategory.CONFIG_CHANGED),
            ("docker-compose.yml", EventCategory.CONFIG_CHANGED),
            (".git/HEAD", EventCategory.GIT_COMMIT),
            (".git/refs/heads/main", EventCategory.GIT_COMMIT),
            (".git/refs/heads/feature/login", EventCategory.GIT_COMMIT),
            (".git/refs/tags/v1.0", EventCategory.GENERIC),
            (".git/config", EventCategory.GENERIC),
            ("config/app.toml", EventCategory.GENERIC),
            ("README.md", EventCategory.GENERIC),
            ("tests/test_main.py", EventCategory.GENERIC),
        ],
    )
    def test_categories(self, classifier: Classifier, relative: str, category: EventCategory):
        """Test path shapes map to their category."""
        assert classifier.category_for(ROOT / relative) is category

    def test_priority_order(self, classifier: Classifier):
        """Test that earlier rules win over later ones."""
        # Claude state beats config file shape
        assert classifier.category_for(ROOT / ".claude" / "config.toml") is EventCategory.CLAUDE_STATE_CHANGED
        # Source tree beats config file name
        assert classifier.category_for(ROOT / "src" / "package.json") is EventCategory.SOURCE_CHANGED

    def test_path_outside_project(self, classifier: Classifier):
        """Test that foreign paths are classified by their components."""
        assert classifier.category_for(Path("/home/u/.claude/state.json")) is EventCategory.CLAUDE_STATE_CHANGED
        assert classifier.category_for(Path("/srv/repo/.git/HEAD")) is EventCategory.GIT_COMMIT
        assert classifier.category_for(Path("/tmp/scratch.txt")) is EventCategory.GENERIC

    def test_custom_source_dirs(self):
        """Test that the source directories are configurable."""
        classifier = Classifier(ROOT, source_dirs=("app",))

        assert classifier.category_for(ROOT / "app" / "main.py") is EventCategory.SOURCE_CHANGED
        assert classifier.category_for(ROOT / "src" / "main.py") is EventCategory.GENERIC

    @pytest.mark.parametrize(
        "relative, source",
        [
            (".claude/settings.json", "claude"),
            (".git/refs/heads/main", "git"),
            ("src/main.py", "source"),
            ("tests/test_main.py", "tests"),
            ("package.json", "project"),
        ],
    )
    def test_determine_source(self, classifier: Classifier, relative: str, source: str):
        """Test the coarse event origin."""
        assert classifier.determine_source(ROOT / relative) == source

    def test_classify(self, classifier: Classifier):
        """Test building a classified event."""
        event = classifier.classify(
            ROOT / ".git" / "refs" / "heads" / "main",
            EventKind.MODIFIED,
            coalesced_count=3,
            first_seen_at=1.0,
            last_seen_at=1.5,
        )

        assert event.category is EventCategory.GIT_COMMIT
        assert event.kind is EventKind.MODIFIED
        assert event.coalesced_count == 3
        assert event.source == "git"
        assert event.is_high_priority
        assert (event.first_seen_at, event.last_seen_at) == (1.0, 1.5)

    def test_payload(self, classifier: Classifier):
        """Test the UI payload shape."""
        payload = classifier.classify(ROOT / "src" / "main.py", EventKind.CREATED).to_payload()

        assert payload["event_type"] == "source_changed"
        assert payload["kind"] == "created"
        assert payload["path"] == str(ROOT / "src" / "main.py")
        assert payload["source"] == "source"
        assert payload["coalesced_count"] == 1
        assert payload["high_priority"] is False
