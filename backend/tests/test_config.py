"""
Tests for Watch Configuration and Settings.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from utils.config import Settings, WatcherSettings
from watcher.config import (
    WatchConfig,
    WatcherPreset,
    WatchTarget,
    default_targets,
    preset_config,
)
from watcher.errors import ConfigurationError
from watcher.filters import FilterRule, RuleType


class TestWatchTarget:
    """Test cases for WatchTarget."""

    def test_factories(self):
        """Test the named target constructors."""
        claude = WatchTarget.claude_dir()
        config = WatchTarget.config_files()

        assert claude.path == Path(".claude")
        assert claude.recursive is True
        assert claude.priority == 10
        assert WatchTarget.git_dir().path == Path(".git/refs/heads")
        assert config.path == Path(".")
        assert config.recursive is False

    def test_resolve_path(self, tmp_path: Path):
        """Test that relative targets resolve against the project root."""
        assert WatchTarget.src_dir().resolve_path(tmp_path) == tmp_path / "src"
        assert WatchTarget(tmp_path / "abs").resolve_path(Path("/other")) == tmp_path / "abs"

    def test_path_is_coerced(self):
        """Test that string paths become Path objects."""
        assert WatchTarget("src").path == Path("src")


class TestWatchConfig:
    """Test cases for WatchConfig."""

    def test_defaults(self, tmp_path: Path):
        """Test default values."""
        config = WatchConfig(project_root=tmp_path)

        assert config.targets == default_targets()
        assert config.debounce_ms == 100
        assert config.recursive is True
        assert config.event_buffer_size == 1000
        assert config.verbose is False
        assert config.poll_fallback is True
        assert config.debounce_seconds == pytest.approx(0.1)
        config.validate()

    @pytest.mark.parametrize(
        "changes",
        [
            {"targets": ()},
            {"debounce_ms": 0},
            {"debounce_ms": 10_001},
            {"event_buffer_size": 0},
            {"poll_interval_ms": 5},
        ],
    )
    def test_validate_rejects(self, tmp_path: Path, changes: dict):
        """Test that out-of-range values fail validation."""
        config = WatchConfig(project_root=tmp_path).with_changes(**changes)

        with pytest.raises(ConfigurationError):
            config.validate()

    def test_non_recursive_switch(self, tmp_path: Path):
        """Test that recursive=False forces every target non-recursive."""
        config = WatchConfig(project_root=tmp_path, recursive=False)

        assert all(not t.recursive for t in config.effective_targets())
        assert any(t.recursive for t in config.targets)

    def test_compiled_filter_rules(self, tmp_path: Path):
        """Test that string rules are parsed and rule objects kept."""
        rule = FilterRule.segment("vendor")
        config = WatchConfig(project_root=tmp_path, filter_rules=(rule, "glob:*.bak"))

        assert config.compiled_filter_rules() == (rule, FilterRule("*.bak", RuleType.GLOB))

    def test_is_immutable(self, tmp_path: Path):
        """Test that configs cannot be mutated after construction."""
        config = WatchConfig(project_root=tmp_path)

        with pytest.raises(AttributeError):
            config.debounce_ms = 5


class TestPresets:
    """Test cases for the named presets."""

    def test_development(self, tmp_path: Path):
        """Test the development preset is fast and verbose."""
        config = preset_config(WatcherPreset.DEVELOPMENT, tmp_path)

        assert config.debounce_ms == 50
        assert config.verbose is True
        assert config.project_root == tmp_path

    def test_production(self, tmp_path: Path):
        """Test the production preset is slower and quiet."""
        config = preset_config("production", tmp_path)

        assert config.debounce_ms == 200
        assert config.verbose is False

    def test_testing(self, tmp_path: Path):
        """Test the testing preset narrows the targets."""
        config = preset_config(WatcherPreset.TESTING, tmp_path)

        assert [t.path for t in config.targets] == [Path("src"), Path("tests")]
        assert config.debounce_ms == 100

    def test_presets_are_valid(self, tmp_path: Path):
        """Test every preset passes validation."""
        for preset in WatcherPreset:
            preset_config(preset, tmp_path).validate()

    def test_unknown_preset(self):
        """Test that an unknown preset name is rejected."""
        with pytest.raises(ValueError):
            preset_config("turbo")


class TestSettings:
    """Test cases for environment-driven settings."""

    def test_from_settings_overrides_preset(self, tmp_path: Path):
        """Test that explicit settings override the preset defaults."""
        settings = WatcherSettings(
            project_root=tmp_path,
            preset="development",
            debounce_ms=300,
            ignore_patterns=["glob:*.bak"],
        )
        config = WatchConfig.from_settings(settings)

        assert config.debounce_ms == 300
        assert config.verbose is True
        assert config.filter_rules == ("glob:*.bak",)

    def test_from_settings_unknown_preset(self, tmp_path: Path):
        """Test that an unknown preset is a configuration error."""
        settings = WatcherSettings(project_root=tmp_path, preset="turbo")

        with pytest.raises(ConfigurationError):
            WatchConfig.from_settings(settings)

    def test_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        """Test that WATCHER_ variables are read, lists as comma strings."""
        monkeypatch.setenv("WATCHER_PROJECT_ROOT", str(tmp_path))
        monkeypatch.setenv("WATCHER_DEBOUNCE_MS", "250")
        monkeypatch.setenv("WATCHER_FORCE_POLLING", "true")
        monkeypatch.setenv("WATCHER_IGNORE_PATTERNS", "glob:*.bak, path_segment:vendor")

        settings = Settings()

        assert settings.watcher.project_root == tmp_path
        assert settings.watcher.debounce_ms == 250
        assert settings.watcher.force_polling is True
        assert settings.watcher.ignore_patterns == ["glob:*.bak", "path_segment:vendor"]
