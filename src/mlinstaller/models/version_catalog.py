"""
Version Catalog for the MelonLoader Installer

This module provides the VersionCatalog class, which fetches the installer
manifest, turns the published loader version into a LoaderVersion, keeps the
suggested mods and charts that ship with it, and owns the optional local
build override registered from a user-supplied zip.
"""

import logging
import zipfile
from pathlib import Path
from typing import Optional, List, Dict, Callable

import semver

from mlinstaller.models.content import SuggestedMod, SuggestedChart, parse_mods, parse_charts
from mlinstaller.models.loader_version import (
    LoaderVersion,
    Platform,
    LINUX_PROXY_FILES,
    normalize_version_string,
    parse_remote_version,
)
from mlinstaller.services.downloader import DownloadManager, DownloadError
from mlinstaller.services.events import EventManager, Events
from mlinstaller.services.paths import get_paths
from mlinstaller.services.settings import read_core_setting
from mlinstaller.utils.file_ops import FileOperations, FileOperationError
from mlinstaller.utils.pe_info import MACHINE_X64, MACHINE_X86, get_machine_type, get_product_version

ProgressCallback = Callable[[float, Optional[str]], None]
FinishedCallback = Callable[[Optional[str]], None]

# Where the loader assembly sits inside a release archive, newest layout first
LOADER_ASSEMBLY_PATHS = (
    "MelonLoader/net6/MelonLoader.dll",
    "MelonLoader/net35/MelonLoader.dll",
    "MelonLoader/MelonLoader.dll",
)

# Holds a new local build until it has been inspected
STAGING_DIR_NAME = ".incoming"


class CatalogError(Exception):
    """Exception raised for catalog and local build errors."""
    pass


class VersionCatalog:
    """
    Loader version catalog.

    The version list is rebuilt on every refresh: it is cleared (keeping only
    the local override), then repopulated from the manifest. A failed refresh
    therefore leaves only the local override behind, while the suggested mods
    and charts keep their previous value.
    """

    def __init__(self, downloader: Optional[DownloadManager] = None,
                 event_manager: Optional[EventManager] = None,
                 local_build_dir: Optional[Path] = None):
        self.logger = logging.getLogger("MLInstaller")
        self.event_manager = event_manager
        self.downloader = downloader or DownloadManager(event_manager)
        self.file_ops = FileOperations()
        self._local_build_dir = local_build_dir

        self.versions: List[LoaderVersion] = []
        self.local_build: Optional[LoaderVersion] = None
        self.suggested_mods: List[SuggestedMod] = []
        self.suggested_charts: List[SuggestedChart] = []

        self._initialized = False

    def initialize(self) -> bool:
        """Refresh once; later calls return the cached success."""
        if self._initialized:
            return True

        self._initialized = self.refresh()
        return self._initialized

    def refresh(self) -> bool:
        """
        Rebuild the version list from the installer manifest.

        Returns:
            bool: True if the manifest was fetched and parsed
        """
        self.versions = [self.local_build] if self.local_build else []

        success = False
        try:
            success = self._fetch_manifest()
        except CatalogError as e:
            self.logger.warning(f"Failed to refresh loader versions: {e}")

        if self.event_manager:
            self.event_manager.emit(Events.VERSIONS_REFRESHED,
                                    success=success,
                                    count=len(self.versions))
        return success

    def _fetch_manifest(self) -> bool:
        manifest_url = read_core_setting("manifest_url")
        self.logger.info(f"Fetching installer manifest: {manifest_url}")

        try:
            response = self.downloader.get(manifest_url)
        except DownloadError as e:
            raise CatalogError(f"Manifest request failed: {e}") from e

        try:
            manifest = response.json()
        except ValueError as e:
            raise CatalogError(f"Manifest is not valid JSON: {e}") from e

        if not isinstance(manifest, dict):
            raise CatalogError("Manifest is not a JSON object")

        version_string = manifest.get("melonloader")
        mods = manifest.get("mods")
        charts = manifest.get("charts")
        if not isinstance(version_string, str):
            raise CatalogError("Manifest has no 'melonloader' version")
        if not isinstance(mods, list) or not isinstance(charts, list):
            raise CatalogError("Manifest has no 'mods' or 'charts' list")

        try:
            version = parse_remote_version(version_string)
        except ValueError as e:
            raise CatalogError(f"Invalid loader version '{version_string}': {e}") from e

        # The remote feed only publishes the 64-bit Windows build
        release_url = read_core_setting("release_url_template").format(
            version=normalize_version_string(version_string))
        remote = LoaderVersion(
            version=version,
            download_urls={
                Platform.WIN64: release_url,
                Platform.WIN32: None,
                Platform.LINUX: None,
            },
        )

        self.suggested_mods = parse_mods(mods)
        self.suggested_charts = parse_charts(charts)

        if not self.add_version(remote):
            return False

        self.logger.info(f"Loader {remote} available, {len(self.suggested_mods)} suggested mods, "
                         f"{len(self.suggested_charts)} suggested charts")
        return True

    def add_version(self, version: LoaderVersion) -> bool:
        """
        Append a version, rejecting remote versions without any download URL.

        Returns:
            bool: True if the version was added
        """
        if not version.has_any_url and not version.is_local_override:
            self.logger.warning(f"Ignoring loader {version}: no platform is supported")
            return False

        self.versions = self.versions + [version]
        return True

    def versions_for(self, platform: Platform, include_nightly: bool = False) -> List[LoaderVersion]:
        """
        List the versions installable on a platform.

        Nightly builds are hidden unless include_nightly is set; local
        overrides are always shown.
        """
        return [
            version for version in self.versions
            if version.supports(platform) and (include_nightly or not version.is_nightly)
        ]

    def get_local_build_dir(self) -> Path:
        if self._local_build_dir is None:
            self._local_build_dir = get_paths().local_build_dir
        return self._local_build_dir

    def set_local_build(self, archive_path: str | Path,
                        on_progress: Optional[ProgressCallback] = None,
                        on_finished: Optional[FinishedCallback] = None) -> None:
        """
        Register a user-supplied loader zip as the local override.

        The archive is copied into the private cache and becomes element zero
        of the catalog, replacing any previous override. A failed registration
        leaves the previous override and its cached archive untouched. The
        outcome is reported through on_finished.
        """
        error: Optional[str] = None
        try:
            local = self._register_local_build(Path(archive_path), on_progress)
            self.logger.info(f"Registered local build {local} from {archive_path}")
        except CatalogError as e:
            error = str(e)
            self.logger.error(f"Failed to register local build: {error}")
        except Exception as e:
            self.logger.error(f"Unexpected error registering local build: {e}", exc_info=True)
            error = f"Unexpected error registering local build: {e}"

        if self.event_manager:
            self.event_manager.emit(Events.LOCAL_BUILD_CHANGED,
                                    version=self.local_build,
                                    error_message=error)
        if on_finished:
            on_finished(error)

    def _register_local_build(self, archive_path: Path,
                              on_progress: Optional[ProgressCallback]) -> LoaderVersion:
        def report(progress: float, status: Optional[str] = None):
            if on_progress:
                on_progress(progress, status)

        if not archive_path.is_file():
            raise CatalogError("The selected file does not exist.")
        if not zipfile.is_zipfile(archive_path):
            raise CatalogError("The selected file is not a zip archive.")

        report(0, "Copying local build")
        try:
            cache_dir = self.get_local_build_dir()
        except RuntimeError as e:
            raise CatalogError(f"No cache directory available: {e}") from e

        cached_archive = cache_dir / archive_path.name
        staged_archive = cache_dir / STAGING_DIR_NAME / archive_path.name
        try:
            self.file_ops.remove_directory(staged_archive.parent)
            self.file_ops.copy_file(archive_path, staged_archive,
                                    lambda progress, status=None: report(progress * 0.8))
        except FileOperationError as e:
            raise CatalogError(f"Failed to copy the local build: {e}") from e

        try:
            report(0.8, "Reading local build")
            local = self._inspect_local_build(staged_archive, cached_archive)
            self._promote_staged_archive(staged_archive, cached_archive)
        finally:
            self._discard_staging(staged_archive.parent)

        # Replaces the previous override as element zero
        remote_versions = [version for version in self.versions if not version.is_local_override]
        self.local_build = local
        self.versions = [local] + remote_versions

        report(1.0)
        return local

    def _promote_staged_archive(self, staged_archive: Path, cached_archive: Path) -> None:
        """Drop the previous cached build and move the staged copy into its place."""
        cache_dir = cached_archive.parent
        try:
            for entry in cache_dir.iterdir():
                if entry == staged_archive.parent:
                    continue
                if entry.is_dir():
                    self.file_ops.remove_directory(entry)
                else:
                    self.file_ops.remove_file(entry)
            staged_archive.replace(cached_archive)
        except (FileOperationError, OSError) as e:
            raise CatalogError(f"Failed to replace the previous local build: {e}") from e

    def _discard_staging(self, staging_dir: Path) -> None:
        try:
            self.file_ops.remove_directory(staging_dir)
        except FileOperationError as e:
            self.logger.debug(f"Could not delete staged local build: {e}")

    def _inspect_local_build(self, archive_path: Path, cached_archive: Path) -> LoaderVersion:
        """Read the platforms and version of a build; URLs point at its final cached location."""
        uri = cached_archive.resolve().as_uri()
        urls: Dict[Platform, Optional[str]] = {platform: None for platform in Platform}
        version_string: Optional[str] = None

        try:
            with zipfile.ZipFile(archive_path) as archive:
                names = {info.filename.replace("\\", "/") for info in archive.infolist()
                         if not info.is_dir()}

                if "version.dll" in names:
                    machine = get_machine_type(archive.read("version.dll"))
                    if machine == MACHINE_X64:
                        urls[Platform.WIN64] = uri
                    elif machine == MACHINE_X86:
                        urls[Platform.WIN32] = uri
                    else:
                        self.logger.warning(f"Unrecognized proxy architecture in {archive_path.name}")

                if any(name in names for name in LINUX_PROXY_FILES):
                    urls[Platform.LINUX] = uri

                for candidate in LOADER_ASSEMBLY_PATHS:
                    if candidate in names:
                        version_string = get_product_version(archive.read(candidate))
                        if version_string:
                            break

        except (zipfile.BadZipFile, OSError) as e:
            raise CatalogError(f"Failed to read the local build: {e}") from e

        if not any(urls.values()):
            raise CatalogError("The selected archive does not contain a MelonLoader build for any supported platform.")

        return LoaderVersion(
            version=self._parse_local_version(version_string),
            download_urls=urls,
            is_local_override=True,
        )

    def _parse_local_version(self, version_string: Optional[str]) -> semver.Version:
        if version_string:
            try:
                return semver.Version.parse(version_string, optional_minor_and_patch=True)
            except ValueError:
                self.logger.warning(f"Local build has an unreadable version '{version_string}'")
        return semver.Version(0, 0, 0)

    def shutdown(self):
        """Delete the local build cache, ignoring failures."""
        if self._local_build_dir is None:
            return

        try:
            self.file_ops.remove_directory(self._local_build_dir)
        except FileOperationError as e:
            self.logger.debug(f"Could not delete local build cache: {e}")


# Global catalog instance (will be initialized by the application)
_version_catalog: Optional[VersionCatalog] = None


def get_version_catalog() -> VersionCatalog:
    """
    Get the global version catalog.

    Raises:
        RuntimeError: If the catalog is not initialized
    """
    if _version_catalog is None:
        raise RuntimeError("Version catalog not initialized")
    return _version_catalog


def initialize_version_catalog(downloader: Optional[DownloadManager] = None,
                               event_manager: Optional[EventManager] = None) -> bool:
    """
    Create the global version catalog.

    Returns:
        bool: True if the catalog was created; fetching happens on initialize()
    """
    global _version_catalog
    try:
        _version_catalog = VersionCatalog(downloader, event_manager)
        return True
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize version catalog: {e}")
        return False


def shutdown_version_catalog():
    """Shutdown the global version catalog, deleting its local build cache."""
    global _version_catalog
    if _version_catalog is not None:
        _version_catalog.shutdown()
        _version_catalog = None
