"""
MelonLoader Installer Application

This module contains the application class that brings up the installer's
services and managers in dependency order and tears them down again.
"""

import logging
from pathlib import Path
from typing import Optional

from mlinstaller.services import downloader, events, paths, settings
from mlinstaller.services.events import EventManager, Events
from mlinstaller.models import installation_manager, version_catalog
from mlinstaller.models.installation_manager import InstallationManager
from mlinstaller.models.version_catalog import VersionCatalog
from mlinstaller.utils.logging_handler import EventManagerHandler, add_event_manager_handler_to_logger


class InstallerApplication:
    """
    Main application class for the installer.
    """

    logger: logging.Logger

    event_manager: EventManager
    catalog: VersionCatalog
    installer: InstallationManager
    _log_handler: Optional[EventManagerHandler]
    _file_handler: Optional[logging.FileHandler]

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Initialize the application.

        Args:
            base_dir: Override for the cache directory
        """
        self.logger = logging.getLogger("MLInstaller")
        self.base_dir = base_dir
        self._log_handler = None
        self._file_handler = None
        self._is_initialized = False

    def initialize(self) -> bool:
        """
        Initialize all services and managers.

        Returns:
            bool: True if every component came up
        """
        try:
            self.logger.debug("Initializing MelonLoader Installer...")

            if not paths.initialize_paths(self.base_dir):
                return False

            if not settings.initialize_settings(paths.get_paths().config_dir):
                return False

            if not events.initialize_event_manager():
                return False
            self.event_manager = events.get_event_manager()

            if not self._initialize_logging():
                return False

            if not downloader.initialize_download_manager(self.event_manager):
                return False

            if not version_catalog.initialize_version_catalog(downloader.get_download_manager(),
                                                              self.event_manager):
                return False
            self.catalog = version_catalog.get_version_catalog()

            if not installation_manager.initialize_installation_manager(self.catalog, self.event_manager):
                return False
            self.installer = installation_manager.get_installation_manager()

            self._is_initialized = True
            self.event_manager.emit(Events.APP_INITIALIZED)
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {e}")
            return False

    def _initialize_logging(self) -> bool:
        """
        Attach the log file and event bus handlers to the application logger.

        Returns:
            bool: True if initialization was successful
        """
        try:
            # Overwritten on every start
            log_file = paths.get_paths().logs_dir / "mlinstaller.log"
            self._file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
            self._file_handler.setLevel(self.logger.level)
            self._file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(module)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S'
            ))
            self.logger.addHandler(self._file_handler)

            self._log_handler = add_event_manager_handler_to_logger(self.logger, self.event_manager)
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize logging handler: {e}")
            return False

    def _remove_log_handlers(self):
        for handler in (self._file_handler, self._log_handler):
            if handler:
                self.logger.removeHandler(handler)
                handler.close()
        self._file_handler = None
        self._log_handler = None

    def shutdown(self):
        """Shutdown the application and clean up resources."""
        try:
            self.logger.debug("Shutting down MelonLoader Installer...")

            if self._is_initialized:
                self.event_manager.emit(Events.APP_SHUTDOWN)

            installation_manager.shutdown_installation_manager()
            # Deletes the local build cache
            version_catalog.shutdown_version_catalog()
            downloader.shutdown_download_manager()

            self._remove_log_handlers()

            events.shutdown_event_manager()
            settings.shutdown_settings()
            paths.shutdown_paths()

            self._is_initialized = False

        except Exception as e:
            self.logger.error(f"Error during application shutdown: {e}")
