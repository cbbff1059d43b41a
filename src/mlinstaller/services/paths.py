"""
Path Management System for the MelonLoader Installer

This module resolves the installer's private directories: the cache that
holds the local build copy, the persisted game list, configuration and logs.
"""

import logging
import os
import platform
from typing import Optional
from pathlib import Path

APP_DIR_NAME = "MelonLoader Installer"


class PathManager:
    """
    Path management system for the installer.

    This class handles:
    - Application cache directory resolution per platform
    - The local build cache directory
    - The persisted game list file
    - Config and log directories
    """

    def __init__(self):
        """Initialize the path manager."""
        self.logger = logging.getLogger("MLInstaller")

        self.cache_dir: Path
        self.local_build_dir: Path
        self.config_dir: Path
        self.logs_dir: Path
        self.game_list_file: Path

        self._is_initialized = False

    def initialize(self, base_dir: Optional[Path] = None) -> bool:
        """
        Initialize the path manager and create the directory structure.

        Args:
            base_dir: Override for the cache directory, mainly for tests

        Returns:
            bool: True if initialization was successful
        """
        try:
            self.logger.debug("Initializing path manager...")

            self._setup_base_directories(base_dir)

            self._create_directory_structure()

            self._is_initialized = True
            self.logger.debug(f"Path manager initialized at {self.cache_dir}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize path manager: {e}")
            return False

    def _setup_base_directories(self, base_dir: Optional[Path]):
        """Setup base directories based on the operating system."""
        if base_dir is not None:
            self.cache_dir = Path(base_dir)
        elif platform.system() == "Windows":
            local_app_data = os.environ.get("LOCALAPPDATA")
            root = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
            self.cache_dir = root / APP_DIR_NAME
        else:
            xdg_cache = os.environ.get("XDG_CACHE_HOME")
            root = Path(xdg_cache) if xdg_cache else Path.home() / ".cache"
            self.cache_dir = root / APP_DIR_NAME

        # Created on demand by the catalog and deleted at shutdown
        self.local_build_dir = self.cache_dir / "Local Build"
        self.config_dir = self.cache_dir / "config"
        self.logs_dir = self.cache_dir / "logs"
        self.game_list_file = self.cache_dir / "games.txt"

    def _create_directory_structure(self):
        """Create the directory structure."""
        for directory in (self.cache_dir, self.config_dir, self.logs_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                self.logger.debug(f"Created directory: {directory}")
            except Exception as e:
                self.logger.error(f"Failed to create directory {directory}: {e}")
                raise


# Global path manager instance (will be initialized by the application)
paths: Optional[PathManager] = None


def get_paths() -> PathManager:
    """
    Get the global path manager instance.

    Raises:
        RuntimeError: If path manager hasn't been initialized
    """
    if paths is None:
        raise RuntimeError("Path manager not initialized")
    return paths


def initialize_paths(base_dir: Optional[Path] = None) -> bool:
    """
    Initialize the global path manager instance.

    Returns:
        bool: True if initialization was successful
    """
    global paths
    try:
        paths = PathManager()
        return paths.initialize(base_dir)
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize global paths: {e}")
        return False


def shutdown_paths():
    """Shutdown the global path manager instance."""
    global paths
    paths = None
