"""
Tests for osimage_promoter.config.settings module.

This test suite covers:
- Defaults when no settings file exists
- Merging a settings file over the defaults
- Errors for corrupted or invalid settings files
- Writing settings back to disk
"""

import importlib
import json
from pathlib import Path

import pytest

from osimage_promoter.config import settings
from osimage_promoter.exceptions import ConfigurationError


class TestLoadSettings:
    """Tests for load_settings() function."""

    def test_load_defaults_when_no_file(self, tmp_path):
        result = settings.load_settings(tmp_path / "nonexistent" / "settings.json")

        assert result.mirror_threads == settings.DEFAULT_MIRROR_THREADS
        assert result.task_sequence_delay == settings.DEFAULT_TASK_SEQUENCE_DELAY
        assert result.distribution_point_group == "All Distribution Points"

    def test_load_merges_with_defaults(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(
            json.dumps({"image_share": "/mnt/images", "mirror_threads": 8})
        )

        result = settings.load_settings(settings_file)

        assert result.image_share == Path("/mnt/images")
        assert result.mirror_threads == 8
        assert result.site_code == "PS1"

    def test_unknown_keys_are_ignored(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(json.dumps({"screensaver_enabled": True}))

        result = settings.load_settings(settings_file)

        assert not hasattr(result, "screensaver_enabled")

    def test_settings_path_is_used_when_no_path_given(self, tmp_path, monkeypatch):
        settings_file = tmp_path / "env.json"
        settings_file.write_text(json.dumps({"site_code": "ABC"}))
        monkeypatch.setattr(
            "osimage_promoter.config.settings.SETTINGS_PATH", settings_file
        )

        assert settings.load_settings().site_code == "ABC"

    def test_corrupted_json_raises(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("{invalid json")

        with pytest.raises(ConfigurationError, match="Could not read"):
            settings.load_settings(settings_file)

    def test_non_dict_json_raises(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("[]")

        with pytest.raises(ConfigurationError, match="JSON object"):
            settings.load_settings(settings_file)

    def test_invalid_value_raises(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(json.dumps({"mirror_threads": "many"}))

        with pytest.raises(ConfigurationError):
            settings.load_settings(settings_file)

    @pytest.mark.parametrize(
        "values",
        [
            {"mirror_threads": 0},
            {"mirror_threads": 129},
            {"task_sequence_delay": -1},
            {"log_max_bytes": 0},
        ],
    )
    def test_out_of_range_values_raise(self, tmp_path, values):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(json.dumps(values))

        with pytest.raises(ConfigurationError):
            settings.load_settings(settings_file)

    def test_settings_are_frozen(self, tmp_path):
        result = settings.load_settings(tmp_path / "missing.json")

        with pytest.raises(AttributeError):
            result.mirror_threads = 2


class TestSettingsPath:
    """Tests for SETTINGS_PATH resolution."""

    @pytest.fixture(autouse=True)
    def restore_module(self, monkeypatch):
        yield
        monkeypatch.undo()
        importlib.reload(settings)

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv("OSIMAGE_PROMOTER_SETTINGS_PATH", raising=False)

        importlib.reload(settings)

        expected = Path.home() / ".config" / "osimage-promoter" / "settings.json"
        assert settings.SETTINGS_PATH == expected

    def test_env_var_override(self, tmp_path, monkeypatch):
        custom_path = tmp_path / "custom_settings.json"
        custom_path.write_text(json.dumps({"site_code": "ENV"}))
        monkeypatch.setenv("OSIMAGE_PROMOTER_SETTINGS_PATH", str(custom_path))

        importlib.reload(settings)

        assert settings.SETTINGS_PATH == custom_path
        assert settings.load_settings().site_code == "ENV"


class TestSaveSettings:
    """Tests for save_settings() function."""

    def test_save_creates_directory_and_reloads(self, tmp_path):
        settings_file = tmp_path / "new_dir" / "settings.json"
        original = settings.load_settings(tmp_path / "missing.json")

        settings.save_settings(original, settings_file)

        assert settings_file.exists()
        assert settings.load_settings(settings_file) == original

    def test_save_formats_json_nicely(self, tmp_path):
        settings_file = tmp_path / "settings.json"

        settings.save_settings(settings.load_settings(tmp_path / "missing.json"), settings_file)

        content = settings_file.read_text()
        data = json.loads(content)
        assert "  " in content
        assert list(data) == sorted(data)
        assert isinstance(data["image_share"], str)
