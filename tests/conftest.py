"""
Pytest configuration and fixtures for MelonLoader Installer tests.
"""

import io
import zipfile

import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock

from mlinstaller.models.loader_version import LoaderVersion, Platform, parse_remote_version
from mlinstaller.services.events import EventManager


def build_zip(entries) -> bytes:
    """Build an in-memory zip from a {name: bytes or str} mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def mock_event_manager():
    """Create a mock event manager."""
    event_manager = Mock(spec=EventManager)
    event_manager.emit = Mock()
    event_manager.subscribe = Mock()
    event_manager.unsubscribe = Mock()
    return event_manager


@pytest.fixture
def game_dir(temp_dir):
    """An empty game directory."""
    directory = temp_dir / "Muse Dash"
    directory.mkdir()
    return directory


@pytest.fixture
def loader_archive():
    """A minimal MelonLoader release archive."""
    return build_zip({
        "version.dll": b"proxy",
        "dobby.dll": b"dobby",
        "NOTICE.txt": "notice",
        "MelonLoader/net6/MelonLoader.dll": b"loader",
    })


@pytest.fixture
def remote_version():
    """The remote 0.7.1 release, published for 64-bit Windows only."""
    return LoaderVersion(
        version=parse_remote_version("0.7.1"),
        download_urls={
            Platform.WIN64: "https://github.com/LavaGang/MelonLoader/releases/download/v0.7.1/MelonLoader.x64.zip",
            Platform.WIN32: None,
            Platform.LINUX: None,
        },
    )


@pytest.fixture
def make_zip():
    """Factory building in-memory zip archives."""
    return build_zip
