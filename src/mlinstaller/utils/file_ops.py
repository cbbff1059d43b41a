"""
File Operations Utilities for the MelonLoader Installer

This module provides the filesystem side of installing the loader: zip
extraction from memory or disk, chunked copies with progress, and the
single-item removals the uninstaller is built from.
"""

import logging
import shutil
import zipfile
from typing import Optional, Callable, BinaryIO, Union
from pathlib import Path

ProgressCallback = Callable[[float, Optional[str]], None]

COPY_CHUNK_SIZE = 1024 * 64


class FileOperationError(Exception):
    """Custom exception for file operation errors."""
    pass


class FileOperations:
    """
    File operations utility class for the installer.

    This class handles:
    - Zip extraction from a path or an in-memory buffer
    - Chunked file copies with progress reporting
    - File and directory removal with typed errors
    """

    def __init__(self):
        """Initialize the file operations manager."""
        self.logger = logging.getLogger("MLInstaller")

    def extract_archive(self, archive: Union[str, Path, BinaryIO], dest_dir: str | Path,
                        progress_callback: Optional[ProgressCallback] = None) -> None:
        """
        Extract a zip archive into a directory.

        Files already written are left in place when extraction fails part
        way through.

        Args:
            archive: Path to the archive or a seekable binary buffer
            dest_dir: Destination directory for extraction
            progress_callback: Optional callback receiving a fraction in [0, 1]

        Raises:
            FileOperationError: If the archive is unreadable or a member cannot be written
        """
        dest_dir = Path(dest_dir)
        if isinstance(archive, (str, Path)) and not Path(archive).exists():
            raise FileOperationError(f"Archive not found: {archive}")

        try:
            dest_dir.mkdir(parents=True, exist_ok=True)

            with zipfile.ZipFile(archive, 'r') as zip_ref:
                members = zip_ref.infolist()
                total_files = len(members)
                last_reported_progress = -1

                for i, member in enumerate(members):
                    zip_ref.extract(member, dest_dir)

                    if progress_callback and total_files > 0:
                        progress = (i + 1) / total_files
                        # Only report progress every percent or on the last member
                        if int(progress * 100) != last_reported_progress or i == total_files - 1:
                            progress_callback(progress, None)
                            last_reported_progress = int(progress * 100)

            self.logger.info(f"Extracted {total_files} entries to {dest_dir}")

        except zipfile.BadZipFile as e:
            raise FileOperationError(f"The archive is not a valid zip file: {e}") from e
        except OSError as e:
            raise FileOperationError(f"Failed to extract archive to {dest_dir}: {e}") from e

    def copy_file(self, src_file: str | Path, dest_file: str | Path,
                  progress_callback: Optional[ProgressCallback] = None) -> None:
        """
        Copy a single file in chunks, reporting progress.

        Raises:
            FileOperationError: If the source is missing or the copy fails
        """
        src_path = Path(src_file)
        dest_path = Path(dest_file)

        if not src_path.is_file():
            raise FileOperationError(f"Source file not found: {src_path}")

        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            total_size = src_path.stat().st_size
            copied = 0

            with open(src_path, 'rb') as src, open(dest_path, 'wb') as dest:
                while True:
                    chunk = src.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    dest.write(chunk)
                    copied += len(chunk)
                    if progress_callback and total_size > 0:
                        progress_callback(copied / total_size, None)

            shutil.copystat(src_path, dest_path)
            self.logger.debug(f"Copied {src_path} to {dest_path}")

        except OSError as e:
            raise FileOperationError(f"Failed to copy {src_path.name}: {e}") from e

    def remove_file(self, file_path: str | Path) -> bool:
        """
        Remove a single file if present.

        Returns:
            bool: True if a file was removed, False if there was nothing to remove

        Raises:
            FileOperationError: If the file exists but cannot be deleted
        """
        path = Path(file_path)
        if not path.is_file():
            return False

        try:
            path.unlink()
        except OSError as e:
            raise FileOperationError(f"Failed to remove {path}: {e}") from e

        self.logger.debug(f"Removed file: {path}")
        return True

    def remove_directory(self, dir_path: str | Path) -> bool:
        """
        Remove a directory recursively if present.

        Returns:
            bool: True if a directory was removed, False if there was nothing to remove

        Raises:
            FileOperationError: If the directory exists but cannot be deleted
        """
        path = Path(dir_path)
        if not path.is_dir():
            return False

        try:
            shutil.rmtree(path)
        except OSError as e:
            raise FileOperationError(f"Failed to remove directory {path}: {e}") from e

        self.logger.debug(f"Removed directory: {path}")
        return True

    def ensure_directories(self, base_dir: str | Path, names) -> None:
        """Create each named subdirectory of base_dir, keeping existing ones."""
        for name in names:
            directory = Path(base_dir) / name
            directory.mkdir(parents=True, exist_ok=True)
            self.logger.debug(f"Ensured directory: {directory}")
