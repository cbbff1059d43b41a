"""
Helper Functions for the MelonLoader Installer

This module provides helper functions for resource lookup, size formatting
and the newline-delimited game list shared with other installer processes.
"""

import logging
import os
from typing import List
from pathlib import Path


def get_resource_base_path() -> Path:
    """Returns the base path for resource files shipped inside the package."""
    base_path = os.path.join(os.path.dirname(__file__), "..", "resources")

    return Path(os.path.abspath(base_path))


def load_game_list(file_path: str | Path) -> List[str]:
    """
    Load the persisted list of game directories.

    Blank lines are dropped. A missing file is an empty list.
    """
    path = Path(file_path)
    if not path.exists():
        return []

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return [line.strip() for line in f if line.strip()]
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to load game list {file_path}: {e}")
        return []


def save_game_list(file_path: str | Path, game_paths: List[str]) -> bool:
    """Write the game list, one directory per line."""
    try:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            for game_path in game_paths:
                f.write(f"{game_path}\n")

        return True

    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to save game list {file_path}: {e}")
        return False


def format_size(num_bytes: int) -> str:
    """Format a byte count the way progress messages show it."""
    if num_bytes > 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.1f} MB"
    return f"{num_bytes // 1024} KB"
