"""
Installation Manager for the MelonLoader Installer

This module provides the InstallationManager class, which runs the install
pipeline (uninstall previous, download, extract, scaffold, optional extras)
on a worker pool and reports progress and the final outcome through
callbacks, mirroring both onto the event bus.
"""

import io
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Callable

from mlinstaller.models.installation import (
    InstallTarget,
    InstallationError,
    InstallationStatus,
    ProgressTracker,
    SCAFFOLD_DIRS,
    CUSTOM_ALBUMS_DIR,
)
from mlinstaller.models.loader_version import LoaderVersion, Platform
from mlinstaller.models.uninstaller import Uninstaller
from mlinstaller.models.version_catalog import VersionCatalog
from mlinstaller.services.downloader import DownloadManager, DownloadError
from mlinstaller.services.events import EventManager, Events
from mlinstaller.services.settings import read_core_setting
from mlinstaller.utils.file_ops import FileOperations, FileOperationError

ProgressCallback = Callable[[float, Optional[str]], None]
FinishedCallback = Callable[[Optional[str]], None]


class InstallationManager:
    """
    Loader installation manager.

    This class handles:
    - The staged install pipeline with weighted progress reporting
    - Uninstalling through the fail-fast Uninstaller
    - Registering local builds on the worker pool

    At most one pipeline may run against a given game directory at a time;
    the manager does not serialize callers.
    """

    def __init__(self, catalog: VersionCatalog,
                 downloader: Optional[DownloadManager] = None,
                 event_manager: Optional[EventManager] = None,
                 uninstaller: Optional[Uninstaller] = None):
        """Initialize the installation manager."""
        self.logger = logging.getLogger("MLInstaller")
        self.catalog = catalog
        self.downloader = downloader or catalog.downloader
        self.event_manager = event_manager
        self.file_ops = FileOperations()
        self.uninstaller = uninstaller or Uninstaller(self.file_ops)

        self.executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="Installer")
        self.status = InstallationStatus.PENDING

        # Shutdown flag to refuse new work
        self.is_shutting_down = False

    def install(self, target_dir: str | Path, remove_user_files: bool, include_extras: bool,
                version: LoaderVersion,
                on_progress: Optional[ProgressCallback] = None,
                on_finished: Optional[FinishedCallback] = None,
                platform: Platform = Platform.WIN64) -> Optional[Future]:
        """
        Start installing a loader version into a game directory.

        The outcome is reported only through on_finished, called exactly once
        with None on success or an error message. The returned future is a
        join handle and always resolves to None.

        Args:
            target_dir: Game directory
            remove_user_files: Remove mods and user data of the previous install
            include_extras: Also install the suggested mods, charts and start screen
            version: Loader version to install
            on_progress: Called with (fraction, status or None)
            on_finished: Called with None or an error message
            platform: Platform of the game, selects the download URL
        """
        if self.is_shutting_down:
            self._finish(on_finished, "The installer is shutting down.", target_dir, version)
            return None

        target = InstallTarget(Path(target_dir), platform)
        if self.event_manager:
            self.event_manager.emit(Events.INSTALLATION_STARTED,
                                    target_dir=str(target.directory),
                                    version=version)

        return self.executor.submit(self._install_worker, target, remove_user_files,
                                    include_extras, version, on_progress, on_finished)

    def _install_worker(self, target: InstallTarget, remove_user_files: bool, include_extras: bool,
                        version: LoaderVersion, on_progress: Optional[ProgressCallback],
                        on_finished: Optional[FinishedCallback]) -> None:
        error: Optional[str] = None
        try:
            self.run_install(target, remove_user_files, include_extras, version, on_progress)
        except InstallationError as e:
            error = str(e)
        except Exception as e:
            self.logger.error(f"Unexpected error during installation: {e}", exc_info=True)
            error = f"Unexpected error during installation: {e}"

        self._finish(on_finished, error, target.directory, version)

    def run_install(self, target: InstallTarget, remove_user_files: bool, include_extras: bool,
                    version: LoaderVersion,
                    on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Run the install pipeline in the calling thread.

        Raises:
            InstallationError: At the first failing stage; earlier stages are not rolled back
        """
        download_url = version.url_for(target.platform)
        if download_url is None:
            raise InstallationError(
                "The selected version does not support the architecture of the current game: "
                f"{target.platform.arch_label}")

        mods = list(self.catalog.suggested_mods) if include_extras else []
        charts = list(self.catalog.suggested_charts) if include_extras else []

        # Loader download + extract, one stage per extra, two for the start screen
        total_stages = 2
        if include_extras:
            total_stages += len(mods) + len(charts) + 2

        def report(progress: float, status: Optional[str]):
            if on_progress:
                on_progress(progress, status)
            if self.event_manager:
                self.event_manager.emit(Events.INSTALLATION_PROGRESS,
                                        target_dir=str(target.directory),
                                        progress=progress,
                                        message=status)

        tracker = ProgressTracker(total_stages, report)

        self._update_status(InstallationStatus.UNINSTALLING)
        tracker.start_stage("Uninstalling previous versions")
        uninstall_error = self.uninstaller.uninstall(target.directory, remove_user_files)
        if uninstall_error:
            raise InstallationError(uninstall_error)

        self._update_status(InstallationStatus.DOWNLOADING)
        tracker.start_stage(f"Downloading MelonLoader {version}")
        buffer = self._download(download_url, tracker, "Failed to download MelonLoader")
        tracker.finish_stage()

        self._update_status(InstallationStatus.EXTRACTING)
        tracker.start_stage(f"Installing {version}")
        self._extract(buffer, target.directory, tracker, "Failed to extract MelonLoader")
        tracker.finish_stage()

        try:
            self.file_ops.ensure_directories(target.directory, SCAFFOLD_DIRS)
        except OSError as e:
            raise InstallationError(f"Failed to create the MelonLoader folders: {e}") from e

        if include_extras:
            self._update_status(InstallationStatus.INSTALLING_EXTRAS)
            self._install_extras(target.directory, mods, charts, tracker)

        self._update_status(InstallationStatus.COMPLETED)
        tracker.complete("Done")
        self.logger.info(f"Installed MelonLoader {version} into {target.directory}")

    def _install_extras(self, game_dir: Path, mods, charts, tracker: ProgressTracker) -> None:
        mods_dir = game_dir / "Mods"
        for mod in mods:
            tracker.start_stage(f"Downloading mod '{mod.name}' v{mod.version}")
            file_path = self._content_path(mods_dir, mod.filename)
            url = read_core_setting("mod_download_url_template").format(id=mod.id)
            buffer = self._download(url, tracker, f"Failed to download mod '{mod.name}'")
            self._write_file(buffer, file_path)
            tracker.finish_stage()

        albums_dir = game_dir / CUSTOM_ALBUMS_DIR
        albums_dir.mkdir(parents=True, exist_ok=True)
        for chart in charts:
            tracker.start_stage(f"Downloading chart '{chart.name}'")
            file_path = self._content_path(albums_dir, chart.filename)
            url = read_core_setting("chart_download_url_template").format(id=chart.id)
            buffer = self._download(url, tracker, f"Failed to download chart '{chart.name}'")
            self._write_file(buffer, file_path)
            tracker.finish_stage()

        tracker.start_stage("Downloading Muse Dash start screen")
        buffer = self._download(read_core_setting("start_screen_url"), tracker,
                                "Failed to download Muse Dash start screen")
        tracker.finish_stage()

        tracker.start_stage("Installing Muse Dash start screen")
        self._extract(buffer, game_dir / "UserData", tracker,
                      "Failed to extract Muse Dash start screen")
        tracker.finish_stage()

    def _download(self, url: str, tracker: ProgressTracker, failure_message: str) -> io.BytesIO:
        """Download into memory; the buffer is dropped on failure."""
        buffer = io.BytesIO()
        try:
            self.downloader.download(url, buffer, tracker.report)
        except DownloadError as e:
            raise InstallationError(f"{failure_message}: {e}") from e

        buffer.seek(0)
        return buffer

    def _extract(self, buffer: io.BytesIO, dest_dir: Path, tracker: ProgressTracker,
                 failure_message: str) -> None:
        try:
            self.file_ops.extract_archive(buffer, dest_dir, tracker.report)
        except FileOperationError as e:
            raise InstallationError(f"{failure_message}: {e}") from e

    def _content_path(self, directory: Path, filename: str) -> Path:
        """Resolve where a content file goes, refusing names that leave the directory."""
        file_path = directory / filename
        if file_path.resolve().parent != directory.resolve():
            raise InstallationError(f"Refusing to write '{filename}' outside of {directory.name}")
        return file_path

    def _write_file(self, buffer: io.BytesIO, file_path: Path) -> None:
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'wb') as f:
                f.write(buffer.getbuffer())
        except OSError as e:
            raise InstallationError(f"Failed to write {file_path.name}: {e}") from e

    def _finish(self, on_finished: Optional[FinishedCallback], error: Optional[str],
                target_dir: str | Path, version: LoaderVersion) -> None:
        if error:
            self._update_status(InstallationStatus.FAILED)
            self.logger.error(f"Installation failed for {target_dir}: {error}")

        if self.event_manager:
            self.event_manager.emit(Events.INSTALLATION_FINISHED,
                                    target_dir=str(target_dir),
                                    version=version,
                                    success=error is None,
                                    error_message=error)
        if on_finished:
            try:
                on_finished(error)
            except Exception as e:
                self.logger.error(f"Error in installation finished callback: {e}", exc_info=True)

    def _update_status(self, status: InstallationStatus):
        self.status = status
        self.logger.debug(f"Installation status: {status.value}")

    def uninstall(self, target_dir: str | Path, remove_user_files: bool) -> Optional[str]:
        """
        Remove the loader from a game directory in the calling thread.

        Returns:
            Optional[str]: The first error encountered, or None on success
        """
        error = self.uninstaller.uninstall(target_dir, remove_user_files)
        if self.event_manager:
            self.event_manager.emit(Events.UNINSTALL_FINISHED,
                                    target_dir=str(target_dir),
                                    success=error is None,
                                    error_message=error)
        return error

    def uninstall_async(self, target_dir: str | Path, remove_user_files: bool,
                        on_finished: Optional[FinishedCallback] = None) -> Future:
        """Run uninstall() on the worker pool and report through on_finished."""
        def worker():
            try:
                error = self.uninstall(target_dir, remove_user_files)
            except Exception as e:
                self.logger.error(f"Unexpected error during uninstall: {e}", exc_info=True)
                error = f"Unexpected error during uninstall: {e}"
            if on_finished:
                on_finished(error)

        return self.executor.submit(worker)

    def set_local_build(self, archive_path: str | Path,
                        on_progress: Optional[ProgressCallback] = None,
                        on_finished: Optional[FinishedCallback] = None) -> Future:
        """Register a local build on the worker pool; see VersionCatalog.set_local_build."""
        return self.executor.submit(self.catalog.set_local_build, archive_path,
                                    on_progress, on_finished)

    def shutdown(self):
        """Shutdown the installation manager."""
        try:
            self.logger.debug("Shutting down installation manager...")
            self.is_shutting_down = True
            # Running pipelines complete; they cannot be cancelled part way
            self.executor.shutdown(wait=False)
            self.logger.debug("Installation manager shutdown complete")

        except Exception as e:
            self.logger.error(f"Error during installation manager shutdown: {e}")


# Global installation manager instance
_installation_manager: Optional[InstallationManager] = None


def initialize_installation_manager(catalog: VersionCatalog,
                                    event_manager: Optional[EventManager] = None) -> bool:
    """
    Initialize the global installation manager.

    Returns:
        bool: True if initialization was successful
    """
    global _installation_manager
    try:
        _installation_manager = InstallationManager(catalog, event_manager=event_manager)
        return True
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize global installation manager: {e}")
        return False


def get_installation_manager() -> InstallationManager:
    """
    Get the global installation manager instance.

    Raises:
        RuntimeError: If installation manager is not initialized
    """
    if _installation_manager is None:
        raise RuntimeError("Installation manager not initialized")

    return _installation_manager


def shutdown_installation_manager():
    """Shutdown the global installation manager."""
    global _installation_manager

    if _installation_manager is not None:
        _installation_manager.shutdown()
        _installation_manager = None
