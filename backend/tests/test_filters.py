"""
Tests for the Event Filter.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from watcher.config import WatchConfig
from watcher.errors import InvalidFilterRuleError
from watcher.filters import BUILTIN_RULES, EventFilter, FilterReason, FilterRule, RuleType


class TestBuiltinRules:
    """Test cases for the built-in noise rules."""

    @pytest.fixture
    def event_filter(self) -> EventFilter:
        """Create a filter rooted at a fake project."""
        return EventFilter(project_root=Path("/work/app"))

    @pytest.mark.parametrize(
        "relative",
        [
            "node_modules/react/index.js",
            "packages/ui/node_modules/x/y.js",
            "target/debug/app",
            "dist/bundle.js",
            "build/lib/module.py",
            ".next/cache/data",
            "src/main.py.swp",
            "notes.tmp",
            "src/app.ts~",
            "package-lock.json",
            "Cargo.lock",
            ".idea/workspace.xml",
            ".vscode/settings.json",
            "src/.DS_Store",
            ".git/objects/ab/cdef",
            ".git/logs/HEAD",
            ".git/index.lock",
            "debug.log",
            "test-results/report.xml",
            "coverage/lcov.info",
            "src/__pycache__/main.cpython-311.pyc",
            ".pytest_cache/v/cache",
        ],
    )
    def test_noise_is_suppressed(self, event_filter: EventFilter, relative: str):
        """Test that common noise never passes."""
        assert event_filter.should_suppress(Path("/work/app") / relative)

    @pytest.mark.parametrize(
        "relative",
        [
            "src/main.py",
            ".claude/settings.json",
            ".git/HEAD",
            ".git/refs/heads/main",
            "package.json",
            "README.md",
            "src/builder.py",
            "docs/distribution.md",
        ],
    )
    def test_meaningful_paths_pass(self, event_filter: EventFilter, relative: str):
        """Test that real project files are kept."""
        assert event_filter.should_watch(Path("/work/app") / relative)

    def test_project_under_build_directory(self):
        """Test that a project living below a 'build' directory is not suppressed wholesale."""
        event_filter = EventFilter(project_root=Path("/home/dev/build/app"))

        assert event_filter.should_watch(Path("/home/dev/build/app/src/main.py"))
        assert event_filter.should_suppress(Path("/home/dev/build/app/build/out.o"))

    def test_path_outside_root_uses_components(self):
        """Test that paths outside the root are still matched by their components."""
        event_filter = EventFilter(project_root=Path("/work/app"))

        assert event_filter.should_suppress(Path("/elsewhere/node_modules/a.js"))
        assert event_filter.should_watch(Path("/elsewhere/src/a.js"))

    def test_builtin_rules_come_first(self):
        """Test rule ordering with user rules appended."""
        user_rule = FilterRule.glob("*.js")
        event_filter = EventFilter([user_rule])

        assert event_filter.rules[: len(BUILTIN_RULES)] == BUILTIN_RULES
        assert event_filter.rules[-1] == user_rule
        assert event_filter.match(Path("node_modules/a.js")).reason is FilterReason.BUILD_ARTIFACT
        assert event_filter.match(Path("src/a.js")) is user_rule

    @pytest.mark.parametrize(
        "relative, suppressed",
        [
            (".random_hidden", True),
            ("src/.cache/data.bin", True),
            (".eslintcache", True),
            (".claude/settings.json", False),
            (".git/HEAD", False),
            (".env", False),
            (".env.local", False),
            (".gitignore", False),
            (".github/workflows/ci.yml", False),
        ],
    )
    def test_hidden_names(self, relative: str, suppressed: bool):
        """Test dot-prefixed names are noise apart from the known exceptions."""
        event_filter = EventFilter(project_root=Path("/work/app"))

        assert event_filter.should_suppress(Path("/work/app") / relative) is suppressed

    def test_hidden_reason(self):
        """Test the hidden rule reports its own reason."""
        rule = EventFilter(project_root=Path("/work/app")).match(Path("/work/app/.random_hidden"))

        assert rule.reason is FilterReason.HIDDEN
        assert rule.rule_type is RuleType.PREFIX


class TestFilterRule:
    """Test cases for FilterRule."""

    def test_substring(self):
        """Test substring rules match anywhere in the rooted path."""
        rule = FilterRule.substring("/generated/")

        assert rule.matches(Path("src/generated/api.py"))
        assert rule.matches(Path("generated/api.py"))
        assert not rule.matches(Path("src/regenerated.py"))

    def test_glob_on_name_and_path(self):
        """Test globs without a slash match the name, with a slash the path."""
        assert FilterRule.glob("*.bak").matches(Path("deep/dir/file.bak"))
        assert FilterRule.glob("docs/*.md").matches(Path("docs/index.md"))
        assert not FilterRule.glob("docs/*.md").matches(Path("src/index.md"))

    def test_path_segment(self):
        """Test segment rules only match whole components."""
        rule = FilterRule.segment("vendor")

        assert rule.matches(Path("lib/vendor/pkg.go"))
        assert not rule.matches(Path("lib/vendors/pkg.go"))

    def test_parse(self):
        """Test the type:pattern string form."""
        assert FilterRule.parse("glob:*.bak") == FilterRule("*.bak", RuleType.GLOB)
        assert FilterRule.parse("path_segment:vendor") == FilterRule("vendor", RuleType.PATH_SEGMENT)
        assert FilterRule.parse("/generated/") == FilterRule("/generated/", RuleType.SUBSTRING)

    @pytest.mark.parametrize(
        "spec",
        ["", "   ", "regex:.*", "glob:[abc", "path_segment:a/b", "bad\x00pattern"],
    )
    def test_invalid_rules_rejected(self, spec: str):
        """Test that malformed rules fail at construction."""
        with pytest.raises(InvalidFilterRuleError):
            FilterRule.parse(spec)

    def test_unknown_rule_type(self):
        """Test that an unknown rule type is rejected."""
        with pytest.raises(InvalidFilterRuleError):
            FilterRule("x", "regex")

    def test_bad_rule_fails_config_validation(self, tmp_path: Path):
        """Test that string rules are checked when the config is validated."""
        config = WatchConfig(project_root=tmp_path, filter_rules=("glob:[oops",))

        with pytest.raises(InvalidFilterRuleError):
            config.validate()


class TestFilterStats:
    """Test cases for rule statistics."""

    def test_counts_per_reason(self):
        """Test that the stats cover every rule."""
        stats = EventFilter([FilterRule.glob("*.bak")]).stats()

        assert stats["custom"] == 1
        assert stats["build_artifact"] == 6
        assert stats["hidden"] == 1
        assert stats["total"] == len(BUILTIN_RULES) + 1
        assert sum(v for k, v in stats.items() if k != "total") == stats["total"]
