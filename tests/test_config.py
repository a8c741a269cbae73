# Tablet Sync Config Tests
# Tests for configuration loading and validation

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from tabsync.config.defaults import DEFAULT_CONFIG, generate_default_config
from tabsync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
    set_external_root,
    validate_config_file,
)
from tabsync.config.schema import ProjectFolder, SyncMode, SyncSettings, TabSyncConfig


class TestTabSyncConfig:
    """Tests for TabSyncConfig schema."""

    def test_defaults(self):
        """Test defaults match the documented values."""
        config = TabSyncConfig()

        assert config.sync.external_root == ""
        assert config.sync.mode is SyncMode.COPY
        assert config.sync.rename_template == "%a_%y_%t"
        assert config.sync.subfolder_template == "%a/%y"
        assert config.sync.concurrency == 3
        assert config.confirm.threshold == 5
        assert config.tags.on_tablet == "_tablet"
        assert config.tags.modified == "_tablet_modified"
        assert config.tags.reading_list == "_reading_list"
        assert config.output.notification_duration == 4000
        assert config.output.error_display_limit == 5

    def test_numeric_mode(self):
        """Test modes written by older versions are accepted."""
        assert SyncSettings(mode=2).mode is SyncMode.MOVE
        assert SyncSettings(mode="1").mode is SyncMode.COPY

    def test_invalid_mode(self):
        """Test unknown modes are rejected."""
        with pytest.raises(ValidationError):
            SyncSettings(mode="mirror")

    def test_invalid_concurrency(self):
        """Test concurrency must be positive."""
        with pytest.raises(ValidationError):
            SyncSettings(concurrency=0)

    def test_path_expansion(self):
        """Test that ~ is expanded in paths."""
        settings = SyncSettings(external_root="~/Tablet")
        assert "~" not in settings.external_root
        assert settings.external_root.endswith("Tablet")

    def test_resolve_project_group(self):
        """Test project labels resolve to their folder."""
        config = TabSyncConfig(project_folders=[ProjectFolder(label="Thesis", path="/projects/thesis/")])

        assert config.resolve_project_group("Thesis") == "projects/thesis"
        assert config.resolve_project_group("misc/") == "misc"
        assert config.resolve_project_group(None) is None
        assert config.resolve_project_group("") is None


class TestLoader:
    """Tests for configuration loading."""

    def test_load_missing(self, temp_dir: Path):
        """Test missing file raises with a hint."""
        with pytest.raises(FileNotFoundError, match="tabsync config init"):
            load_config(temp_dir / "missing.yaml")

    def test_load_merges_defaults(self, temp_dir: Path):
        """Test partial files are completed from defaults."""
        path = temp_dir / "config.yaml"
        path.write_text("sync:\n  external_root: /mnt/tablet\n  mode: move\n", encoding="utf-8")

        config = load_config(path)

        assert config.sync.external_root == "/mnt/tablet"
        assert config.sync.mode is SyncMode.MOVE
        assert config.sync.rename is True
        assert config.tags.on_tablet == "_tablet"

    def test_load_empty_file(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).sync.external_root == ""

    def test_save_and_load(self, temp_dir: Path):
        """Test saved configuration loads back unchanged."""
        config = TabSyncConfig(project_folders=[ProjectFolder(label="A", path="a")])
        config.sync.external_root = str(temp_dir / "tablet")
        path = save_config(config, temp_dir / "nested" / "config.yaml")

        assert load_config(path) == config

    def test_env_override(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TABSYNC_CONFIG", str(temp_dir / "custom.yaml"))
        assert get_config_path() == temp_dir / "custom.yaml"

    def test_ensure_config_exists(self, temp_dir: Path):
        """Test default file is created once."""
        path = temp_dir / "config.yaml"

        created_path, created = ensure_config_exists(path)
        assert created
        assert created_path == path
        assert yaml.safe_load(path.read_text(encoding="utf-8"))["sync"]["mode"] == "copy"

        _, created = ensure_config_exists(path)
        assert not created

    def test_set_external_root(self, config_file: Path, temp_dir: Path):
        """Test changing the root keeps the rest of the file."""
        config = set_external_root(temp_dir / "other", config_file)

        assert config.sync.external_root == str(temp_dir / "other")
        reloaded = load_config(config_file)
        assert reloaded.sync.external_root == str(temp_dir / "other")
        assert reloaded.project_folders[0].label == "Thesis"


class TestValidation:
    """Tests for configuration file validation."""

    def test_valid(self, config_file: Path):
        valid, errors = validate_config_file(config_file)
        assert valid, errors

    def test_missing_root(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text(generate_default_config(), encoding="utf-8")

        valid, errors = validate_config_file(path)

        assert not valid
        assert "sync.external_root is not set" in errors

    def test_invalid_value(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("sync:\n  concurrency: 0\n", encoding="utf-8")

        valid, errors = validate_config_file(path)

        assert not valid
        assert any("concurrency" in error for error in errors)

    def test_invalid_yaml(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("sync: [unclosed\n", encoding="utf-8")

        valid, errors = validate_config_file(path)

        assert not valid
        assert "Invalid YAML" in errors[0]

    def test_duplicate_labels(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        data = {
            "sync": {"external_root": str(temp_dir)},
            "project_folders": [{"label": "A", "path": "a"}, {"label": "A", "path": "b"}],
        }
        path.write_text(yaml.dump(data), encoding="utf-8")

        valid, errors = validate_config_file(path)

        assert not valid
        assert "Duplicate project folder labels: A" in errors


class TestDefaults:
    """Tests for default configuration."""

    def test_generated_yaml_matches_defaults(self):
        """Test generated file parses to the default dict."""
        assert yaml.safe_load(generate_default_config()) == DEFAULT_CONFIG
