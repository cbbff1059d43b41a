"""
Game Launcher Registry

Each launcher kind contributes one discovery function returning candidate
game directories. The installer core only ever receives resolved
directories; launchers that scan store manifests live outside this package
and register themselves here.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from mlinstaller.services.paths import get_paths
from mlinstaller.utils.helpers import load_game_list, save_game_list

DiscoveryFunction = Callable[[], List[Path]]

_launchers: Dict[str, DiscoveryFunction] = {}


def register_launcher(name: str) -> Callable[[DiscoveryFunction], DiscoveryFunction]:
    """Decorator registering a discovery function under a launcher name."""
    def decorator(func: DiscoveryFunction) -> DiscoveryFunction:
        _launchers[name] = func
        return func
    return decorator


def unregister_launcher(name: str) -> None:
    _launchers.pop(name, None)


def get_launchers() -> Dict[str, DiscoveryFunction]:
    return dict(_launchers)


def enumerate_games() -> List[Path]:
    """
    Collect game directories from every registered launcher.

    A failing launcher is logged and skipped. Duplicates keep their first
    position.
    """
    logger = logging.getLogger("MLInstaller")
    games: List[Path] = []
    seen = set()

    for name, discover in _launchers.items():
        try:
            candidates = discover()
        except Exception as e:
            logger.warning(f"Game discovery failed for launcher '{name}': {e}")
            continue

        for candidate in candidates:
            key = str(Path(candidate).resolve())
            if key in seen:
                continue
            seen.add(key)
            games.append(Path(candidate))

    return games


def _game_list_file(game_list_file: Optional[Path]) -> Path:
    return game_list_file if game_list_file is not None else get_paths().game_list_file


def add_manual_game(game_dir: str | Path, game_list_file: Optional[Path] = None) -> bool:
    """
    Remember a game directory in the persisted game list.

    Returns:
        bool: False if the directory does not exist or is already listed
    """
    game_path = Path(game_dir)
    if not game_path.is_dir():
        return False

    list_file = _game_list_file(game_list_file)
    entries = load_game_list(list_file)
    if str(game_path) in entries:
        return False

    entries.append(str(game_path))
    return save_game_list(list_file, entries)


def remove_manual_game(game_dir: str | Path, game_list_file: Optional[Path] = None) -> bool:
    """Forget a game directory; returns False if it was not listed."""
    list_file = _game_list_file(game_list_file)
    entries = load_game_list(list_file)
    if str(Path(game_dir)) not in entries:
        return False

    entries.remove(str(Path(game_dir)))
    return save_game_list(list_file, entries)


@register_launcher("manual")
def discover_manual_games() -> List[Path]:
    """Games the user added by hand, skipping entries that no longer exist."""
    try:
        list_file = get_paths().game_list_file
    except RuntimeError:
        return []

    return [Path(entry) for entry in load_game_list(list_file) if Path(entry).is_dir()]
