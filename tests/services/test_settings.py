"""
Tests for the settings manager.
"""

import json

import pytest

from mlinstaller.services import settings as settings_module
from mlinstaller.services.settings import SettingsManager, DEFAULT_CORE_SETTINGS, read_core_setting


@pytest.fixture
def settings_manager(temp_dir):
    manager = SettingsManager()
    assert manager.initialize(temp_dir / "config")
    return manager


class TestSettingsManager:
    """Tests for loading and storing settings."""

    def test_seeds_files_from_defaults(self, settings_manager, temp_dir):
        config_dir = temp_dir / "config"

        assert (config_dir / "user_settings.json").exists()
        core = json.loads((config_dir / "core_settings.json").read_text(encoding="utf-8"))
        assert core["manifest_url"] == DEFAULT_CORE_SETTINGS["manifest_url"]
        assert settings_manager.read("include_nightly") is False
        assert settings_manager.read("keep_user_files") is True

    def test_existing_file_overrides_defaults(self, temp_dir):
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        (config_dir / "core_settings.json").write_text(
            json.dumps({"manifest_url": "http://localhost:8000/installer"}), encoding="utf-8")

        manager = SettingsManager()
        manager.initialize(config_dir)

        assert manager.read_core("manifest_url") == "http://localhost:8000/installer"
        assert manager.read_core("request_timeout") == 30

    def test_store_and_save(self, settings_manager, temp_dir):
        assert settings_manager.store("include_extras", True)
        assert settings_manager.save()

        reloaded = SettingsManager()
        reloaded.initialize(temp_dir / "config")
        assert reloaded.read("include_extras") is True

    def test_store_before_initialize_fails(self):
        assert SettingsManager().store("include_extras", True) is False

    def test_read_before_initialize_uses_defaults(self):
        manager = SettingsManager()

        assert manager.read_core("start_screen_url") == "http://mdmc.moe/cdn/startscreen.zip"
        assert manager.read("missing", "fallback") == "fallback"


class TestReadCoreSetting:
    """Tests for the module-level core setting lookup."""

    def test_falls_back_without_global_settings(self):
        assert settings_module.settings is None
        assert read_core_setting("download_retries") == 3
        assert read_core_setting("unknown", "x") == "x"

    def test_reads_global_settings(self, temp_dir):
        assert settings_module.initialize_settings(temp_dir / "config")
        try:
            settings_module.get_settings().current_core_settings["request_timeout"] = 5
            assert read_core_setting("request_timeout") == 5
        finally:
            settings_module.shutdown_settings()

        assert settings_module.settings is None

    def test_get_settings_requires_initialization(self):
        with pytest.raises(RuntimeError):
            settings_module.get_settings()
