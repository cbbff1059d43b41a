"""
Tests for the installation manager pipeline.
"""

import pytest
import requests
from unittest.mock import Mock, patch

from mlinstaller.models.content import SuggestedMod, SuggestedChart
from mlinstaller.models.installation import InstallTarget, InstallationError, InstallationStatus, ProgressTracker
from mlinstaller.models.installation_manager import InstallationManager
from mlinstaller.models.loader_version import Platform
from mlinstaller.models.uninstaller import Uninstaller
from mlinstaller.models.version_catalog import VersionCatalog
from mlinstaller.services.downloader import DownloadManager, DownloadError
from mlinstaller.services.events import Events
from mlinstaller.utils.pe_info import MACHINE_X64

LOADER_URL = "https://github.com/LavaGang/MelonLoader/releases/download/v0.7.1/MelonLoader.x64.zip"
MOD_URL = "https://api.mdmc.moe/v2/mods/1/download"
CHART_URL = "https://api.mdmc.moe/v2/charts/7/download"
START_SCREEN_URL = "http://mdmc.moe/cdn/startscreen.zip"


def serving(payloads):
    """Download side effect writing canned payloads in two halves with progress."""
    def download(url, destination, progress_callback=None):
        if url not in payloads:
            raise DownloadError("The server responded with status 404")
        data = payloads[url]
        half = len(data) // 2
        destination.write(data[:half])
        if progress_callback:
            progress_callback(0.5, None)
        destination.write(data[half:])
        if progress_callback:
            progress_callback(1.0, None)
        return len(data)
    return download


@pytest.fixture
def mock_downloader():
    return Mock(spec=DownloadManager)


@pytest.fixture
def catalog(mock_downloader, temp_dir):
    catalog = VersionCatalog(mock_downloader, local_build_dir=temp_dir / "Local Build")
    catalog.suggested_mods = [SuggestedMod(id="1", name="Foo", version="1.0")]
    return catalog


@pytest.fixture
def manager(catalog, mock_downloader, mock_event_manager):
    manager = InstallationManager(catalog, mock_downloader, mock_event_manager,
                                  Uninstaller(check_os_components=False))
    yield manager
    manager.shutdown()


@pytest.fixture
def payloads(loader_archive, make_zip):
    return {
        LOADER_URL: loader_archive,
        MOD_URL: b"mod assembly",
        CHART_URL: b"chart",
        START_SCREEN_URL: make_zip({"startscreen.png": b"png"}),
    }


class TestProgressTracker:
    """Tests for stage-weighted progress."""

    def test_stages_share_the_range(self):
        reports = []
        tracker = ProgressTracker(2, lambda p, s: reports.append(p))

        tracker.report(0.5)
        tracker.finish_stage()
        tracker.report(0.5)

        assert reports == [0.25, 0.75]

    def test_progress_never_decreases(self):
        reports = []
        tracker = ProgressTracker(1, lambda p, s: reports.append(p))

        tracker.report(0.6)
        tracker.report(0.1)

        assert reports == [0.6, 0.6]

    def test_complete_reports_one(self):
        reports = []
        tracker = ProgressTracker(4, lambda p, s: reports.append((p, s)))

        tracker.complete("Done")

        assert reports == [(1.0, "Done")]


class TestInstallPipeline:
    """Tests for the synchronous install pipeline."""

    def test_install_with_extras(self, manager, mock_downloader, payloads, game_dir, remote_version):
        mock_downloader.download.side_effect = serving(payloads)
        reports = []

        manager.run_install(InstallTarget(game_dir), False, True, remote_version,
                            lambda p, s: reports.append((p, s)))

        assert (game_dir / "version.dll").read_bytes() == b"proxy"
        assert (game_dir / "MelonLoader" / "net6" / "MelonLoader.dll").exists()
        for dirname in ("Mods", "Plugins", "UserData", "UserLibs"):
            assert (game_dir / dirname).is_dir()
        assert (game_dir / "Mods" / "Foo.dll").read_bytes() == b"mod assembly"
        assert (game_dir / "Custom_Albums").is_dir()
        assert (game_dir / "UserData" / "startscreen.png").exists()

        progress = [p for p, _ in reports]
        assert progress == sorted(progress)
        assert progress[-1] == 1.0
        assert reports[-1][1] == "Done"
        assert manager.status == InstallationStatus.COMPLETED

        urls = [call.args[0] for call in mock_downloader.download.call_args_list]
        assert urls == [LOADER_URL, MOD_URL, START_SCREEN_URL]

    def test_install_charts(self, manager, catalog, mock_downloader, payloads, game_dir, remote_version):
        catalog.suggested_mods = []
        catalog.suggested_charts = [SuggestedChart(id="7", name="Bar")]
        mock_downloader.download.side_effect = serving(payloads)

        manager.run_install(InstallTarget(game_dir), False, True, remote_version)

        assert (game_dir / "Custom_Albums" / "Bar.mdm").read_bytes() == b"chart"

    def test_install_without_extras(self, manager, mock_downloader, payloads, game_dir, remote_version):
        mock_downloader.download.side_effect = serving(payloads)

        manager.run_install(InstallTarget(game_dir), False, False, remote_version)

        assert mock_downloader.download.call_count == 1
        assert not (game_dir / "Mods" / "Foo.dll").exists()
        assert not (game_dir / "Custom_Albums").exists()

    def test_replaces_previous_install(self, manager, mock_downloader, payloads, game_dir, remote_version):
        (game_dir / "MelonLoader").mkdir()
        (game_dir / "MelonLoader" / "stale.dll").write_bytes(b"old")
        mock_downloader.download.side_effect = serving(payloads)

        manager.run_install(InstallTarget(game_dir), False, False, remote_version)

        assert not (game_dir / "MelonLoader" / "stale.dll").exists()

    def test_unsupported_platform(self, manager, mock_downloader, game_dir, remote_version):
        with pytest.raises(InstallationError) as exc_info:
            manager.run_install(InstallTarget(game_dir, Platform.LINUX), False, False, remote_version)

        assert str(exc_info.value) == (
            "The selected version does not support the architecture of the current game: linux-x64")
        mock_downloader.download.assert_not_called()

    def test_uninstall_failure_aborts(self, catalog, mock_downloader, game_dir, remote_version):
        uninstaller = Mock(spec=Uninstaller)
        uninstaller.uninstall.return_value = "Failed to uninstall MelonLoader. Ensure that the game is fully closed before trying again."
        manager = InstallationManager(catalog, mock_downloader, uninstaller=uninstaller)

        try:
            with pytest.raises(InstallationError, match="fully closed"):
                manager.run_install(InstallTarget(game_dir), False, False, remote_version)
        finally:
            manager.shutdown()

        mock_downloader.download.assert_not_called()

    def test_download_failure(self, manager, mock_downloader, game_dir, remote_version):
        mock_downloader.download.side_effect = DownloadError("The server responded with status 404")

        with pytest.raises(InstallationError) as exc_info:
            manager.run_install(InstallTarget(game_dir), False, False, remote_version)

        assert str(exc_info.value) == "Failed to download MelonLoader: The server responded with status 404"
        assert not (game_dir / "Mods").exists()

    def test_corrupt_archive(self, manager, mock_downloader, game_dir, remote_version):
        mock_downloader.download.side_effect = serving({LOADER_URL: b"definitely not a zip"})

        with pytest.raises(InstallationError, match="^Failed to extract MelonLoader: "):
            manager.run_install(InstallTarget(game_dir), False, False, remote_version)

    def test_mod_download_failure(self, manager, mock_downloader, loader_archive, game_dir, remote_version):
        mock_downloader.download.side_effect = serving({LOADER_URL: loader_archive})

        with pytest.raises(InstallationError, match="^Failed to download mod 'Foo': "):
            manager.run_install(InstallTarget(game_dir), False, True, remote_version)

        # The loader itself stays installed
        assert (game_dir / "version.dll").exists()


class TestInstallAsync:
    """Tests for the callback contract of install()."""

    def test_success_reports_none_once(self, manager, mock_downloader, payloads, game_dir,
                                       remote_version, mock_event_manager):
        mock_downloader.download.side_effect = serving(payloads)
        on_finished = Mock()
        on_progress = Mock()

        future = manager.install(game_dir, False, False, remote_version, on_progress, on_finished)
        future.result(timeout=10)

        on_finished.assert_called_once_with(None)
        assert on_progress.call_args.args[0] == 1.0
        mock_event_manager.emit.assert_any_call(Events.INSTALLATION_FINISHED,
                                                target_dir=str(game_dir),
                                                version=remote_version,
                                                success=True,
                                                error_message=None)

    def test_failure_reports_message_once(self, manager, game_dir, remote_version):
        on_finished = Mock()

        future = manager.install(game_dir, False, False, remote_version, None, on_finished,
                                 platform=Platform.WIN32)
        future.result(timeout=10)

        on_finished.assert_called_once_with(
            "The selected version does not support the architecture of the current game: win-x86")
        assert manager.status == InstallationStatus.FAILED

    def test_unexpected_error_is_reported(self, manager, mock_downloader, game_dir, remote_version):
        mock_downloader.download.side_effect = RuntimeError("boom")
        on_finished = Mock()

        manager.install(game_dir, False, False, remote_version, None, on_finished).result(timeout=10)

        on_finished.assert_called_once_with("Unexpected error during installation: boom")

    def test_refused_while_shutting_down(self, manager, game_dir, remote_version):
        manager.is_shutting_down = True
        on_finished = Mock()

        assert manager.install(game_dir, False, False, remote_version, None, on_finished) is None
        on_finished.assert_called_once_with("The installer is shutting down.")


class TestUninstallAndLocalBuild:
    """Tests for the manager's uninstall and local build entry points."""

    def test_uninstall_emits_event(self, manager, game_dir, mock_event_manager):
        (game_dir / "MelonLoader").mkdir()

        assert manager.uninstall(game_dir, False) is None

        assert not (game_dir / "MelonLoader").exists()
        mock_event_manager.emit.assert_called_with(Events.UNINSTALL_FINISHED,
                                                   target_dir=str(game_dir),
                                                   success=True,
                                                   error_message=None)

    def test_uninstall_async(self, manager, temp_dir):
        on_finished = Mock()

        manager.uninstall_async(temp_dir / "missing", False, on_finished).result(timeout=10)

        on_finished.assert_called_once_with("The provided directory does not exist.")

    def test_set_local_build_runs_on_worker(self, mock_downloader, temp_dir):
        catalog = Mock(spec=VersionCatalog)
        manager = InstallationManager(catalog, mock_downloader)
        try:
            manager.set_local_build(temp_dir / "build.zip").result(timeout=10)
        finally:
            manager.shutdown()

        catalog.set_local_build.assert_called_once_with(temp_dir / "build.zip", None, None)


class TestPartialInstalls:
    """Tests for failures after some files were already written."""

    def test_start_screen_failure_keeps_earlier_extras(self, manager, mock_downloader, payloads,
                                                      game_dir, remote_version):
        payloads[START_SCREEN_URL] = b"not a zip"
        mock_downloader.download.side_effect = serving(payloads)

        with pytest.raises(InstallationError, match="^Failed to extract Muse Dash start screen: "):
            manager.run_install(InstallTarget(game_dir), False, True, remote_version)

        assert (game_dir / "version.dll").exists()
        assert (game_dir / "Mods" / "Foo.dll").read_bytes() == b"mod assembly"

    def test_content_name_cannot_leave_its_folder(self, manager, catalog, mock_downloader, payloads,
                                                  game_dir, remote_version):
        catalog.suggested_mods = [SuggestedMod(id="1", name="../../escaped", version="1.0")]
        mock_downloader.download.side_effect = serving(payloads)

        with pytest.raises(InstallationError, match="^Refusing to write '../../escaped.dll'"):
            manager.run_install(InstallTarget(game_dir), False, True, remote_version)

        assert not (game_dir.parent / "escaped.dll").exists()
        urls = [call.args[0] for call in mock_downloader.download.call_args_list]
        assert urls == [LOADER_URL]


class TestLocalOverrideInstall:
    """Tests for installing a registered local build through its file: URL."""

    @patch('mlinstaller.models.version_catalog.get_product_version')
    @patch('mlinstaller.models.version_catalog.get_machine_type')
    def test_installs_from_cached_archive(self, mock_machine, mock_product_version,
                                          loader_archive, game_dir, temp_dir):
        mock_machine.return_value = MACHINE_X64
        mock_product_version.return_value = "0.7.2"
        session = Mock(spec=requests.Session)
        downloader = DownloadManager(session=session)
        catalog = VersionCatalog(downloader, local_build_dir=temp_dir / "Local Build")
        manager = InstallationManager(catalog, downloader, uninstaller=Uninstaller(check_os_components=False))
        archive = temp_dir / "build.zip"
        archive.write_bytes(loader_archive)
        on_finished = Mock()

        try:
            catalog.set_local_build(archive, on_finished=on_finished)
            on_finished.assert_called_once_with(None)
            # The source may go away once it is cached
            archive.unlink()

            manager.run_install(InstallTarget(game_dir), False, False, catalog.versions[0])
        finally:
            manager.shutdown()

        assert (game_dir / "version.dll").read_bytes() == b"proxy"
        assert (game_dir / "MelonLoader" / "net6" / "MelonLoader.dll").exists()
        session.get.assert_not_called()


class TestUninstallAsyncErrors:
    """Tests for the callback contract of uninstall_async()."""

    def test_unexpected_error_is_reported(self, catalog, mock_downloader, game_dir):
        uninstaller = Mock(spec=Uninstaller)
        uninstaller.uninstall.side_effect = PermissionError("denied")
        manager = InstallationManager(catalog, mock_downloader, uninstaller=uninstaller)
        on_finished = Mock()

        try:
            manager.uninstall_async(game_dir, False, on_finished).result(timeout=10)
        finally:
            manager.shutdown()

        on_finished.assert_called_once_with("Unexpected error during uninstall: denied")
