"""
Loader Uninstaller

Removes a previous loader installation from a game directory. The steps run
in a fixed order and stop at the first failure, whose message is returned;
nothing removed before the failure is restored.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Iterable

from mlinstaller.models.installation import LOADER_DIR_NAME, SCAFFOLD_DIRS, CUSTOM_ALBUMS_DIR
from mlinstaller.models.loader_version import Platform, PROXY_FILES, ALL_PROXY_FILES
from mlinstaller.utils.file_ops import FileOperations, FileOperationError
from mlinstaller.utils.pe_info import is_os_component

MISSING_DIRECTORY_MESSAGE = "The provided directory does not exist."
LOCKED_FILES_MESSAGE = ("Failed to uninstall MelonLoader. Ensure that the game is fully closed "
                        "before trying again.")
PROXY_LOCKED_MESSAGE = ("Failed to uninstall MelonLoader: Failed to remove the proxy '{name}'. "
                        "Ensure that the game is fully closed before trying again.")
PARTIAL_MESSAGE = "Failed to fully uninstall MelonLoader: {reason}"

# Helper files shipped at the game root, with the reason shown when they stick around
ROOT_HELPER_FILES = (
    ("dobby.dll", "Failed to remove dobby."),
    ("NOTICE.txt", "Failed to remove 'NOTICE.txt'."),
)

USER_CONTENT_DIRS = SCAFFOLD_DIRS + (CUSTOM_ALBUMS_DIR,)


class Uninstaller:
    """
    Fail-fast loader removal.

    On Windows, proxy-named files that carry a Microsoft copyright are system
    libraries and are left alone.
    """

    def __init__(self, file_ops: Optional[FileOperations] = None,
                 check_os_components: Optional[bool] = None):
        self.logger = logging.getLogger("MLInstaller")
        self.file_ops = file_ops or FileOperations()
        if check_os_components is None:
            check_os_components = sys.platform == "win32"
        self.check_os_components = check_os_components

    def uninstall(self, target_dir: str | Path, remove_user_files: bool,
                  platform: Optional[Platform] = None) -> Optional[str]:
        """
        Remove the loader from a game directory.

        Args:
            target_dir: Game directory
            remove_user_files: Also remove mods, plugins and user data
            platform: Restrict proxy detection to one platform's file names

        Returns:
            Optional[str]: The first error encountered, or None on success
        """
        game_dir = Path(target_dir)
        if not game_dir.is_dir():
            return MISSING_DIRECTORY_MESSAGE

        self.logger.info(f"Uninstalling MelonLoader from {game_dir}")

        proxy_names = PROXY_FILES[platform] if platform else ALL_PROXY_FILES
        error = self._remove_proxies(game_dir, proxy_names)
        if error:
            return error

        try:
            self.file_ops.remove_directory(game_dir / LOADER_DIR_NAME)
        except FileOperationError as e:
            self.logger.error(str(e))
            return LOCKED_FILES_MESSAGE

        for filename, reason in ROOT_HELPER_FILES:
            try:
                self.file_ops.remove_file(game_dir / filename)
            except FileOperationError as e:
                self.logger.error(str(e))
                return PARTIAL_MESSAGE.format(reason=reason)

        if remove_user_files:
            for dirname in USER_CONTENT_DIRS:
                try:
                    self.file_ops.remove_directory(game_dir / dirname)
                except FileOperationError as e:
                    self.logger.error(str(e))
                    return PARTIAL_MESSAGE.format(reason=f"Failed to remove the {dirname} folder.")

        self.logger.info(f"Uninstalled MelonLoader from {game_dir}")
        return None

    def _remove_proxies(self, game_dir: Path, proxy_names: Iterable[str]) -> Optional[str]:
        for proxy in proxy_names:
            proxy_path = game_dir / proxy
            if not proxy_path.is_file():
                continue

            if self.check_os_components and is_os_component(proxy_path):
                self.logger.info(f"Keeping {proxy}: it is a system library")
                continue

            try:
                self.file_ops.remove_file(proxy_path)
            except FileOperationError as e:
                self.logger.error(str(e))
                return PROXY_LOCKED_MESSAGE.format(name=proxy)
        return None
