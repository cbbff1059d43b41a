"""
Loader Version Data Models

This module contains the platform enumeration, the proxy file table and the
LoaderVersion model, together with the two version comparators the installer
relies on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

import semver

# Appended to every version published by the remote feed
REMOTE_PRERELEASE = "ci.-1"


class Platform(Enum):
    """Game platform classification (OS + bitness)."""
    WIN64 = "win64"
    WIN32 = "win32"
    LINUX = "linux"

    @property
    def arch_label(self) -> str:
        """Label used in messages, e.g. 'win-x64'."""
        return {
            Platform.WIN64: "win-x64",
            Platform.WIN32: "win-x86",
            Platform.LINUX: "linux-x64",
        }[self]


WINDOWS_PROXY_FILES = ("version.dll", "winmm.dll", "winhttp.dll")
LINUX_PROXY_FILES = ("MelonBootstrap.so", "libversion.so", "libwinmm.so", "libwinhttp.so")

PROXY_FILES: Dict[Platform, tuple] = {
    Platform.WIN64: WINDOWS_PROXY_FILES,
    Platform.WIN32: WINDOWS_PROXY_FILES,
    Platform.LINUX: LINUX_PROXY_FILES,
}

ALL_PROXY_FILES = WINDOWS_PROXY_FILES + LINUX_PROXY_FILES


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_precedence(a: semver.Version, b: semver.Version) -> int:
    """
    Standard SemVer precedence: build metadata is ignored.

    Returns:
        int: negative, zero or positive like a classic cmp()
    """
    return a.compare(b)


def compare_sort_order(a: semver.Version, b: semver.Version) -> int:
    """
    Total sort order: precedence first, then build metadata.

    Two versions equal in precedence but with different build metadata are
    not equal here. Absent metadata sorts before any metadata; identifiers
    are compared ordinally, then by count.
    """
    result = compare_precedence(a, b)
    if result != 0:
        return result

    if a.build == b.build:
        return 0
    if a.build is None:
        return -1
    if b.build is None:
        return 1

    a_parts = a.build.split(".")
    b_parts = b.build.split(".")
    for a_part, b_part in zip(a_parts, b_parts):
        if a_part != b_part:
            return _cmp(a_part, b_part)
    return _cmp(len(a_parts), len(b_parts))


def normalize_version_string(version_string: str) -> str:
    """Strip whitespace and a leading 'v' from a published version, e.g. 'v0.7.1' -> '0.7.1'."""
    version_string = version_string.strip()
    if version_string[:1] in ("v", "V"):
        version_string = version_string[1:]
    return version_string


def parse_remote_version(version_string: str) -> semver.Version:
    """
    Parse a version published by the remote feed.

    Accepts a leading 'v' and a missing minor or patch component
    ('v0.7.1', '0.7').

    Raises:
        ValueError: If the string is not a valid semantic version
    """
    return semver.Version.parse(f"{normalize_version_string(version_string)}-{REMOTE_PRERELEASE}",
                                optional_minor_and_patch=True)


@dataclass
class LoaderVersion:
    """A loader version and where to get it for each platform."""
    version: semver.Version
    download_urls: Dict[Platform, Optional[str]] = field(default_factory=dict)
    is_local_override: bool = False

    def url_for(self, platform: Platform) -> Optional[str]:
        return self.download_urls.get(platform)

    def supports(self, platform: Platform) -> bool:
        return self.url_for(platform) is not None

    @property
    def has_any_url(self) -> bool:
        return any(url is not None for url in self.download_urls.values())

    @property
    def is_nightly(self) -> bool:
        """Pre-release builds other than remote releases and local overrides."""
        if self.is_local_override or self.version.prerelease is None:
            return False
        return self.version.prerelease != REMOTE_PRERELEASE

    def compare_precedence(self, other: semver.Version) -> int:
        return compare_precedence(self.version, other)

    def compare_sort_order(self, other: semver.Version) -> int:
        return compare_sort_order(self.version, other)

    def __str__(self) -> str:
        core = f"v{self.version.major}.{self.version.minor}.{self.version.patch}"
        if self.is_local_override:
            return f"{core} (local)"
        if self.is_nightly:
            return f"{core}-{self.version.prerelease}"
        return core


def describe_install_action(selected: LoaderVersion, installed: Optional[semver.Version]) -> str:
    """
    Name the action installing `selected` over `installed` amounts to.

    Returns:
        str: "Install", "Upgrade", "Reinstall" or "Downgrade"
    """
    if installed is None:
        return "Install"

    comparison = selected.compare_sort_order(installed)
    if comparison < 0:
        return "Downgrade"
    if comparison == 0:
        return "Reinstall"
    return "Upgrade"
