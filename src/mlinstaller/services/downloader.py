"""
Download Manager for the MelonLoader Installer

This module provides HTTP download functionality with progress tracking. It
streams a URL into any writable binary buffer (an in-memory BytesIO for the
loader archive, an open file for content) and reports progress as a fraction.
`file:` URLs are read from disk the same way, which is how local builds are
installed.
"""

import logging
import time
from typing import Optional, Callable, BinaryIO
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mlinstaller.services.events import EventManager, Events
from mlinstaller.services.settings import read_core_setting
from mlinstaller.utils.helpers import format_size

ProgressCallback = Callable[[float, Optional[str]], None]


class DownloadError(Exception):
    """Custom exception for download-related errors."""
    pass


class DownloadManager:
    """
    Download management system for the installer.

    This class handles:
    - HTTP downloads with retries and progress tracking
    - Reading local `file:` URLs with the same progress contract
    - Event emission for front end coordination
    """

    CHUNK_SIZE = 8192

    # Log/event throttling thresholds
    PROGRESS_AFTER_MSECS = 2000  # 2 seconds
    PROGRESS_AFTER_BYTES = 1024 * 1024 * 5  # 5 MB

    def __init__(self, event_manager: Optional[EventManager] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the download manager.

        Args:
            event_manager: Event manager for front end communication
            session: Pre-built HTTP session, mainly for tests
        """
        self.logger = logging.getLogger("MLInstaller")
        self.event_manager = event_manager
        self.timeout = read_core_setting("request_timeout", 30)

        if session is None:
            # HTTP session with retry strategy
            session = requests.Session()
            retry_strategy = Retry(
                total=read_core_setting("download_retries", 3),
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def get(self, url: str) -> requests.Response:
        """
        Issue a single GET and fail on transport errors or non-2xx status.

        Raises:
            DownloadError: If the request fails
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            raise DownloadError(str(e)) from e

    def download(self, url: str, destination: BinaryIO,
                 progress_callback: Optional[ProgressCallback] = None) -> int:
        """
        Stream a URL into a binary buffer.

        On failure the caller's buffer may hold partial data; callers own the
        buffer and discard it.

        Args:
            url: http(s) or file URL to download from
            destination: Writable binary buffer
            progress_callback: Optional callback receiving a fraction in [0, 1]

        Returns:
            int: Number of bytes written

        Raises:
            DownloadError: If the transfer fails
        """
        if self.event_manager:
            self.event_manager.emit(Events.DOWNLOAD_STARTED, url=url)

        self.logger.info(f"Starting download from {url}")
        success = False
        try:
            if urlparse(url).scheme == "file":
                written = self._copy_local(url, destination, progress_callback)
            else:
                written = self._stream_http(url, destination, progress_callback)
            success = True
            self.logger.info(f"Download completed: {url} ({format_size(written)})")
            return written
        finally:
            if self.event_manager:
                self.event_manager.emit(Events.DOWNLOAD_FINISHED, url=url, success=success)

    def _stream_http(self, url: str, destination: BinaryIO,
                     progress_callback: Optional[ProgressCallback]) -> int:
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
            try:
                response.raise_for_status()

                total_size = int(response.headers.get('content-length', 0) or 0)
                return self._pump(response.iter_content(chunk_size=self.CHUNK_SIZE),
                                  total_size, destination, progress_callback)
            finally:
                response.close()

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            raise DownloadError(f"The server responded with status {status}") from e
        except requests.exceptions.RequestException as e:
            raise DownloadError(f"HTTP error during download: {e}") from e

    def _copy_local(self, url: str, destination: BinaryIO,
                    progress_callback: Optional[ProgressCallback]) -> int:
        path = Path(url2pathname(urlparse(url).path))
        if not path.is_file():
            raise DownloadError(f"Local file not found: {path}")

        try:
            total_size = path.stat().st_size
            with open(path, 'rb') as f:
                chunks = iter(lambda: f.read(self.CHUNK_SIZE), b"")
                return self._pump(chunks, total_size, destination, progress_callback)
        except OSError as e:
            raise DownloadError(f"Failed to read {path}: {e}") from e

    def _pump(self, chunks, total_size: int, destination: BinaryIO,
              progress_callback: Optional[ProgressCallback]) -> int:
        """Write chunks to the destination, reporting whole-percent progress steps."""
        downloaded = 0
        last_percent = -1

        last_progress_time = time.time() * 1000
        last_progress_bytes = 0

        for chunk in chunks:
            if not chunk:  # Filter out keep-alive chunks
                continue

            destination.write(chunk)
            downloaded += len(chunk)

            if progress_callback and total_size > 0:
                percent = min(100, downloaded * 100 // total_size)
                if percent != last_percent:
                    progress_callback(min(1.0, downloaded / total_size), None)
                    last_percent = percent

            current_time = time.time() * 1000
            delta_time = current_time - last_progress_time
            delta_bytes = downloaded - last_progress_bytes
            if (delta_time >= self.PROGRESS_AFTER_MSECS or
                    delta_bytes >= self.PROGRESS_AFTER_BYTES):
                progress_msg = self._get_progress_string(downloaded, total_size, delta_time, delta_bytes)
                self.logger.debug(progress_msg)
                if self.event_manager:
                    self.event_manager.emit(Events.DOWNLOAD_PROGRESS,
                                            downloaded=downloaded,
                                            total=total_size,
                                            message=progress_msg)
                last_progress_time = current_time
                last_progress_bytes = downloaded

        if progress_callback and last_percent != 100:
            progress_callback(1.0, None)

        return downloaded

    def _get_progress_string(self, downloaded: int, total: int,
                             delta_time: float, delta_bytes: int) -> str:
        """
        Generate a progress string

        Args:
            downloaded: Total bytes downloaded
            total: Total file size (0 if unknown)
            delta_time: Time since last update in milliseconds
            delta_bytes: Bytes downloaded since last update
        """
        percent_str = ""
        if total > 0:
            percent_str = f" ({downloaded / total * 100:.1f}%)"

        speed_str = " at "
        if delta_time > 0:
            speed_bps = (delta_bytes / delta_time) * 1000.0
            if speed_bps > 1024 * 1024:
                speed_str += f"{speed_bps / (1024 * 1024):.1f} MB/s"
            else:
                speed_str += f"{speed_bps / 1024:.0f} KB/s"
        else:
            speed_str += "calculating..."

        return f"Download progress: {format_size(downloaded)}{percent_str}{speed_str}"

    def shutdown(self) -> None:
        """Close the HTTP session."""
        self.session.close()
        self.logger.debug("Download manager shutdown")


# Global download manager instance (will be initialized by the application)
download_manager: Optional[DownloadManager] = None


def get_download_manager() -> DownloadManager:
    """
    Get the global download manager instance.

    Raises:
        RuntimeError: If download manager hasn't been initialized
    """
    if download_manager is None:
        raise RuntimeError("Download manager not initialized")
    return download_manager


def initialize_download_manager(event_manager: Optional[EventManager] = None) -> bool:
    """
    Initialize the global download manager instance.

    Returns:
        bool: True if initialization was successful
    """
    global download_manager
    try:
        download_manager = DownloadManager(event_manager)
        return True
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize global download manager: {e}")
        return False


def shutdown_download_manager():
    """Shutdown the global download manager instance."""
    global download_manager
    if download_manager:
        download_manager.shutdown()
        download_manager = None
