"""
Settings Management System for the MelonLoader Installer

This module provides JSON-based settings storage with a dual-settings layout:
core settings hold the service endpoints and network tuning, user settings
hold install preferences. Both are seeded from default files shipped in
resources/config.
"""

import logging
import json
from typing import Any, Dict, Optional
from pathlib import Path

from mlinstaller.utils.helpers import get_resource_base_path

# Fallbacks used when the settings manager is not initialized (tests, library use)
DEFAULT_CORE_SETTINGS: Dict[str, Any] = {
    "manifest_url": "https://api.mdmc.moe/v2/installer",
    "release_url_template": "https://github.com/LavaGang/MelonLoader/releases/download/v{version}/MelonLoader.x64.zip",
    "mod_download_url_template": "https://api.mdmc.moe/v2/mods/{id}/download",
    "chart_download_url_template": "https://api.mdmc.moe/v2/charts/{id}/download",
    "start_screen_url": "http://mdmc.moe/cdn/startscreen.zip",
    "request_timeout": 30,
    "download_retries": 3,
}


class SettingsManager:
    """
    Settings management system with dual-settings architecture.

    This class handles:
    - Loading and saving settings to JSON files
    - Dual settings management (core and user)
    - Default value management from configuration files
    """

    USER_SETTINGS_FILE = "user_settings.json"
    CORE_SETTINGS_FILE = "core_settings.json"
    CORE_DEFAULTS_FILE = "core_defaults.json"
    USER_DEFAULTS_FILE = "user_defaults.json"

    def __init__(self):
        """Initialize the settings manager."""
        self.logger = logging.getLogger("MLInstaller")
        self.user_settings_file: Optional[Path] = None
        self.core_settings_file: Optional[Path] = None
        self.current_user_settings: Dict[str, Any] = {}
        self.current_core_settings: Dict[str, Any] = {}
        self._is_loaded = False

    def _load_default_config(self, config_filename: str) -> Dict[str, Any]:
        """
        Load default configuration from resources.

        Args:
            config_filename: Name of the configuration file to load

        Returns:
            Dict[str, Any]: Default configuration data
        """
        try:
            config_path = get_resource_base_path() / "config" / config_filename
            if config_path.exists():
                with open(config_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            else:
                self.logger.warning(f"Default config file not found: {config_filename}")
                return {}
        except Exception as e:
            self.logger.error(f"Failed to load default config {config_filename}: {e}")
            return {}

    def _get_default_user_settings(self) -> Dict[str, Any]:
        return self._load_default_config(self.USER_DEFAULTS_FILE)

    def _get_default_core_settings(self) -> Dict[str, Any]:
        defaults = DEFAULT_CORE_SETTINGS.copy()
        defaults.update(self._load_default_config(self.CORE_DEFAULTS_FILE))
        return defaults

    def initialize(self, settings_dir: Path) -> bool:
        """
        Initialize the settings manager and load settings.

        Args:
            settings_dir: Directory where settings files should be stored

        Returns:
            bool: True if initialization was successful
        """
        try:
            self.logger.debug("Initializing settings manager...")

            settings_dir.mkdir(parents=True, exist_ok=True)
            self.user_settings_file = settings_dir / self.USER_SETTINGS_FILE
            self.core_settings_file = settings_dir / self.CORE_SETTINGS_FILE

            self.current_user_settings = self._load_settings_file(
                self.user_settings_file, self._get_default_user_settings())
            self.current_core_settings = self._load_settings_file(
                self.core_settings_file, self._get_default_core_settings())

            self._is_loaded = True
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize settings manager: {e}")
            return False

    def _load_settings_file(self, settings_file: Path, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Load a settings file over its defaults, writing the defaults if it does not exist."""
        settings = defaults.copy()
        try:
            if settings_file.exists():
                self.logger.debug(f"Loading settings from {settings_file}")
                with open(settings_file, 'r', encoding='utf-8') as f:
                    settings.update(json.load(f))
            else:
                self.logger.info(f"No settings file at {settings_file}, using defaults")
                self._write_settings_file(settings_file, settings)
        except Exception as e:
            self.logger.error(f"Failed to load settings from {settings_file}: {e}")
            settings = defaults.copy()
        return settings

    def _write_settings_file(self, settings_file: Optional[Path], data: Dict[str, Any]) -> bool:
        try:
            if not settings_file:
                self.logger.error("Settings file not set")
                return False

            with open(settings_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)

            self.logger.debug(f"Settings saved to {settings_file}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to save settings to {settings_file}: {e}")
            return False

    def read_user(self, setting_name: str, default: Any = None) -> Any:
        """Read a user setting value, or default if it doesn't exist."""
        if not self._is_loaded:
            return self._get_default_user_settings().get(setting_name, default)
        return self.current_user_settings.get(setting_name, default)

    def read_core(self, setting_name: str, default: Any = None) -> Any:
        """Read a core setting value, or default if it doesn't exist."""
        if not self._is_loaded:
            return self._get_default_core_settings().get(setting_name, default)
        return self.current_core_settings.get(setting_name, default)

    def read(self, setting_name: str, default: Any = None) -> Any:
        """Read a setting value (defaults to user settings)."""
        return self.read_user(setting_name, default)

    def store_user(self, setting_name: str, value: Any) -> bool:
        """
        Store a user setting value.

        Returns:
            bool: True if setting was stored successfully
        """
        if not self._is_loaded:
            self.logger.warning("Settings not loaded, cannot store setting")
            return False

        self.current_user_settings[setting_name] = value
        self.logger.debug(f"User setting '{setting_name}' = {value}")
        return True

    def store(self, setting_name: str, value: Any) -> bool:
        """Store a setting value (defaults to user settings)."""
        return self.store_user(setting_name, value)

    def save(self) -> bool:
        """
        Save both user and core settings to files.

        Returns:
            bool: True if both settings were saved successfully
        """
        user_saved = self._write_settings_file(self.user_settings_file, self.current_user_settings)
        core_saved = self._write_settings_file(self.core_settings_file, self.current_core_settings)
        return user_saved and core_saved

    def shutdown(self):
        """Shutdown the settings manager and save settings."""
        try:
            if self._is_loaded:
                self.save()
            self.logger.debug("Settings manager shutdown complete")

        except Exception as e:
            self.logger.error(f"Error during settings manager shutdown: {e}")


# Global settings instance (will be initialized by the application)
settings: Optional[SettingsManager] = None


def get_settings() -> SettingsManager:
    """
    Get the global settings instance.

    Raises:
        RuntimeError: If settings haven't been initialized
    """
    if settings is None:
        raise RuntimeError("Settings manager not initialized")
    return settings


def read_core_setting(setting_name: str, default: Any = None) -> Any:
    """
    Read a core setting, falling back to the built-in defaults.

    Components call this instead of get_settings() so they keep working when
    the application shell has not initialized settings.
    """
    fallback = DEFAULT_CORE_SETTINGS.get(setting_name, default)
    try:
        return get_settings().read_core(setting_name, fallback)
    except RuntimeError:
        return fallback


def initialize_settings(settings_dir: Path) -> bool:
    """
    Initialize the global settings instance.

    Returns:
        bool: True if initialization was successful
    """
    global settings
    try:
        settings = SettingsManager()
        return settings.initialize(settings_dir)
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize global settings: {e}")
        return False


def shutdown_settings():
    """Shutdown the global settings instance."""
    global settings
    if settings:
        settings.shutdown()
        settings = None
