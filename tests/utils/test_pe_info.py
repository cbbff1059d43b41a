"""
Tests for PE metadata helpers.
"""

from unittest.mock import patch

from mlinstaller.utils.pe_info import (
    read_version_strings, is_os_component, get_machine_type, get_product_version,
)


class TestNonPeInput:
    """Files that are not PE images are treated as having no metadata."""

    def test_version_strings_of_garbage(self):
        assert read_version_strings(b"definitely not a PE image") == {}

    def test_machine_type_of_garbage(self):
        assert get_machine_type(b"definitely not a PE image") is None

    def test_missing_file(self, temp_dir):
        assert read_version_strings(temp_dir / "missing.dll") == {}

    def test_text_file_is_not_os_component(self, temp_dir):
        fake_proxy = temp_dir / "version.dll"
        fake_proxy.write_text("plain text")

        assert is_os_component(fake_proxy) is False


class TestOsComponent:
    """Tests for the copyright guard."""

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_microsoft_copyright(self, mock_strings):
        mock_strings.return_value = {"LegalCopyright": "© Microsoft Corporation. All rights reserved."}

        assert is_os_component("version.dll") is True

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_other_copyright(self, mock_strings):
        mock_strings.return_value = {"LegalCopyright": "Copyright (c) LavaGang"}

        assert is_os_component("version.dll") is False


class TestProductVersion:
    """Tests for product version trimming."""

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_four_part_version(self, mock_strings):
        mock_strings.return_value = {"ProductVersion": "0.6.1.0"}

        assert get_product_version("MelonLoader.dll") == "0.6.1"

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_prerelease_kept_build_dropped(self, mock_strings):
        mock_strings.return_value = {"ProductVersion": "0.7.0-ci.5+abcdef"}

        assert get_product_version("MelonLoader.dll") == "0.7.0-ci.5"

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_file_version_fallback(self, mock_strings):
        mock_strings.return_value = {"FileVersion": "0.5.7"}

        assert get_product_version("MelonLoader.dll") == "0.5.7"

    @patch('mlinstaller.utils.pe_info.read_version_strings')
    def test_no_version(self, mock_strings):
        mock_strings.return_value = {}

        assert get_product_version("MelonLoader.dll") is None
