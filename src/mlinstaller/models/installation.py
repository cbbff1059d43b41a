"""
Installation Data Models

This module contains the install target description, the installation status
enumeration, the installation exception and the stage-weighted progress
tracker used by the install pipeline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Callable

import semver

from mlinstaller.models.loader_version import Platform
from mlinstaller.utils.pe_info import get_product_version

LOADER_DIR_NAME = "MelonLoader"

# Directories created next to the loader on every install
SCAFFOLD_DIRS = ("Mods", "Plugins", "UserData", "UserLibs")
CUSTOM_ALBUMS_DIR = "Custom_Albums"

INSTALLED_ASSEMBLY_PATHS = (
    Path(LOADER_DIR_NAME) / "net6" / "MelonLoader.dll",
    Path(LOADER_DIR_NAME) / "net35" / "MelonLoader.dll",
    Path(LOADER_DIR_NAME) / "MelonLoader.dll",
)


class InstallationStatus(Enum):
    """Installation status enumeration."""
    PENDING = "pending"
    UNINSTALLING = "uninstalling"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    INSTALLING_EXTRAS = "installing_extras"
    COMPLETED = "completed"
    FAILED = "failed"


class InstallationError(Exception):
    """Exception raised for installation-related errors."""
    pass


@dataclass
class InstallTarget:
    """A game directory the loader can be installed into."""
    directory: Path
    platform: Platform = Platform.WIN64

    def __post_init__(self):
        self.directory = Path(self.directory)

    @property
    def has_loader(self) -> bool:
        """Whether a previous loader installation is present."""
        return (self.directory / LOADER_DIR_NAME).is_dir()

    def installed_version(self) -> Optional[semver.Version]:
        """Read the version of the installed loader assembly, if any."""
        for relative_path in INSTALLED_ASSEMBLY_PATHS:
            assembly = self.directory / relative_path
            if not assembly.is_file():
                continue

            version_string = get_product_version(assembly)
            if not version_string:
                continue
            try:
                return semver.Version.parse(version_string, optional_minor_and_patch=True)
            except ValueError:
                logging.getLogger("MLInstaller").warning(
                    f"Installed loader has an unreadable version '{version_string}'")
        return None


class ProgressTracker:
    """
    Maps per-stage progress onto a single [0, 1] range.

    Every stage gets an equal share. Reported values never decrease, so a
    sub-operation that restarts at zero cannot move the bar backwards.
    """

    def __init__(self, total_stages: int,
                 on_progress: Optional[Callable[[float, Optional[str]], None]] = None):
        self.total_stages = max(1, total_stages)
        self.current_stage = 0
        self.on_progress = on_progress
        self.last_reported = 0.0

    def report(self, progress: float, status: Optional[str] = None):
        """Report progress within the current stage."""
        progress = min(max(progress, 0.0), 1.0)
        overall = min(1.0, (self.current_stage + progress) / self.total_stages)
        self.last_reported = max(self.last_reported, overall)
        if self.on_progress:
            self.on_progress(self.last_reported, status)

    def start_stage(self, status: Optional[str] = None):
        """Report the beginning of the current stage."""
        self.report(0, status)

    def finish_stage(self):
        """Move to the next stage."""
        self.current_stage = min(self.current_stage + 1, self.total_stages)

    def complete(self, status: Optional[str] = None):
        """Report the end of the whole pipeline."""
        self.current_stage = self.total_stages
        self.last_reported = 1.0
        if self.on_progress:
            self.on_progress(1.0, status)
