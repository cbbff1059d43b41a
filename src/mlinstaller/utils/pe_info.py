"""
Portable Executable metadata helpers.

Reads the version resource strings and machine type of Windows binaries with
pefile. Used to tell the loader's proxy DLLs apart from system libraries, to
read the installed loader version, and to work out the bitness of a local
build.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

import pefile

logger = logging.getLogger("MLInstaller")

MACHINE_X64 = pefile.MACHINE_TYPE["IMAGE_FILE_MACHINE_AMD64"]
MACHINE_X86 = pefile.MACHINE_TYPE["IMAGE_FILE_MACHINE_I386"]


def _load_pe(source: str | Path | bytes) -> pefile.PE:
    if isinstance(source, bytes):
        pe = pefile.PE(data=source, fast_load=True)
    else:
        pe = pefile.PE(str(source), fast_load=True)
    return pe


def read_version_strings(source: str | Path | bytes) -> Dict[str, str]:
    """
    Read the StringFileInfo entries (CompanyName, LegalCopyright, ...) of a PE file.

    Returns an empty dict when the file is not a PE image or has no version
    resource.
    """
    try:
        pe = _load_pe(source)
    except (pefile.PEFormatError, OSError) as e:
        logger.debug(f"Not a readable PE image: {e}")
        return {}

    data: Dict[str, str] = {}
    try:
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]]
        )

        if hasattr(pe, "FileInfo"):
            for file_info_entry in pe.FileInfo:
                entries_to_process = (
                    file_info_entry
                    if isinstance(file_info_entry, list)
                    else [file_info_entry]
                )
                for entry in entries_to_process:
                    if hasattr(entry, "StringTable"):
                        for st in entry.StringTable:
                            for key, value in st.entries.items():
                                try:
                                    data[key.decode("utf-8")] = value.decode("utf-8")
                                except UnicodeDecodeError:
                                    data[key.decode("latin-1", "ignore")] = (
                                        value.decode("latin-1", "ignore")
                                    )
    finally:
        pe.close()

    return data


def is_os_component(file_path: str | Path) -> bool:
    """
    Whether a binary is an operating system library.

    Windows ships its own version.dll, winmm.dll and winhttp.dll; these carry a
    Microsoft copyright and must never be deleted.
    """
    copyright_text = read_version_strings(file_path).get("LegalCopyright", "")
    return "Microsoft" in copyright_text


def get_machine_type(source: str | Path | bytes) -> Optional[int]:
    """Return the COFF machine type of a PE image, or None if it is not one."""
    try:
        pe = _load_pe(source)
    except (pefile.PEFormatError, OSError) as e:
        logger.debug(f"Not a readable PE image: {e}")
        return None

    try:
        return pe.FILE_HEADER.Machine
    finally:
        pe.close()


def get_product_version(source: str | Path | bytes) -> Optional[str]:
    """
    Read the product version of a PE file, trimmed to major.minor.patch.

    Falls back to FileVersion when ProductVersion is missing.
    """
    strings = read_version_strings(source)
    raw = strings.get("ProductVersion") or strings.get("FileVersion")
    if not raw:
        return None

    # "0.6.1.0" and "0.6.1+abcdef" both become "0.6.1"; "-ci.5" suffixes are kept
    core = raw.strip().split("+")[0].split(" ")[0]
    numbers, dash, prerelease = core.partition("-")
    parts = numbers.split(".")
    if len(parts) > 3:
        numbers = ".".join(parts[:3])
    return f"{numbers}{dash}{prerelease}"
