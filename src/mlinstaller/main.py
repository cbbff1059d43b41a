#!/usr/bin/env python3
"""
Main entry point for the MelonLoader Installer

This module provides the command line front end: listing loader versions,
installing, uninstalling, and managing the list of known games.
"""

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from mlinstaller.application import InstallerApplication
from mlinstaller.models.installation import InstallTarget
from mlinstaller.models.launchers import add_manual_game, remove_manual_game, enumerate_games
from mlinstaller.models.loader_version import Platform, describe_install_action
from mlinstaller.services.settings import get_settings


def setup_logging(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("MLInstaller")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(module)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S')
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mlinstaller", description="Install MelonLoader into a game")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    platform_choices = [platform.value for platform in Platform]

    versions_parser = subparsers.add_parser("versions", help="List installable loader versions")
    versions_parser.add_argument("--platform", choices=platform_choices, default=Platform.WIN64.value)
    versions_parser.add_argument("--nightly", action="store_true", default=None,
                                 help="Include nightly builds")
    versions_parser.add_argument("--game", type=Path, help="Compare against the loader installed in this game")

    install_parser = subparsers.add_parser("install", help="Install or update MelonLoader")
    install_parser.add_argument("game_dir", type=Path)
    install_parser.add_argument("--platform", choices=platform_choices, default=Platform.WIN64.value)
    install_parser.add_argument("--local-zip", type=Path, help="Install a local MelonLoader zip instead")
    install_parser.add_argument("--remove-user-files", action="store_true",
                                help="Remove mods and user data of the previous install")
    install_parser.add_argument("--extras", action="store_true", default=None,
                                help="Also install the suggested mods, charts and start screen")

    uninstall_parser = subparsers.add_parser("uninstall", help="Remove MelonLoader from a game")
    uninstall_parser.add_argument("game_dir", type=Path)
    uninstall_parser.add_argument("--remove-user-files", action="store_true",
                                  help="Also remove Mods, Plugins, UserData, UserLibs and Custom_Albums")

    games_parser = subparsers.add_parser("games", help="Manage the list of known games")
    games_parser.add_argument("action", choices=["list", "add", "remove"])
    games_parser.add_argument("game_dir", type=Path, nargs="?")

    return parser


def print_progress(progress: float, status: Optional[str] = None):
    if status:
        print(f"\n{status}")
    print(f"\r[{int(progress * 100):3d}%]", end="", flush=True)


def command_versions(app: InstallerApplication, args) -> int:
    if not app.catalog.initialize():
        print("Failed to fetch MelonLoader releases. Ensure you're online.", file=sys.stderr)

    include_nightly = args.nightly
    if include_nightly is None:
        include_nightly = bool(get_settings().read("include_nightly", False))

    installed = InstallTarget(args.game).installed_version() if args.game else None
    for version in app.catalog.versions_for(Platform(args.platform), include_nightly):
        action = describe_install_action(version, installed)
        print(f"{version}  [{action}]")
    return 0


def _wait_for(run) -> Optional[str]:
    """Run a callback-reporting operation and block until it finishes."""
    done = threading.Event()
    outcome = {}

    def on_finished(error: Optional[str]):
        outcome["error"] = error
        done.set()

    run(on_finished)
    done.wait()
    print()
    return outcome.get("error")


def command_install(app: InstallerApplication, args) -> int:
    platform = Platform(args.platform)

    if args.local_zip:
        error = _wait_for(lambda finished: app.installer.set_local_build(args.local_zip, print_progress, finished))
        if error:
            print(error, file=sys.stderr)
            return 1
    elif not app.catalog.initialize():
        print("Failed to fetch MelonLoader releases. Ensure you're online.", file=sys.stderr)
        return 1

    candidates = app.catalog.versions_for(platform, include_nightly=True)
    if not candidates:
        print(f"No MelonLoader version supports {platform.arch_label}.", file=sys.stderr)
        return 1
    version = candidates[0]

    include_extras = args.extras
    if include_extras is None:
        include_extras = bool(get_settings().read("include_extras", False))
    remove_user_files = args.remove_user_files or not get_settings().read("keep_user_files", True)

    error = _wait_for(lambda finished: app.installer.install(
        args.game_dir, remove_user_files, include_extras, version,
        print_progress, finished, platform=platform))
    if error:
        print(error, file=sys.stderr)
        return 1

    print(f"Successfully installed MelonLoader {version}!")
    return 0


def command_uninstall(app: InstallerApplication, args) -> int:
    remove_user_files = args.remove_user_files or not get_settings().read("keep_user_files", True)
    error = app.installer.uninstall(args.game_dir, remove_user_files)
    if error:
        print(error, file=sys.stderr)
        return 1

    print("Successfully uninstalled MelonLoader!")
    return 0


def command_games(app: InstallerApplication, args) -> int:
    if args.action == "list":
        for game_dir in enumerate_games():
            target = InstallTarget(game_dir)
            marker = " (MelonLoader installed)" if target.has_loader else ""
            print(f"{game_dir}{marker}")
        return 0

    if args.game_dir is None:
        print(f"'games {args.action}' needs a game directory", file=sys.stderr)
        return 2

    if args.action == "add":
        if not add_manual_game(args.game_dir):
            print(f"Could not add {args.game_dir}: missing or already listed", file=sys.stderr)
            return 1
        return 0

    if not remove_manual_game(args.game_dir):
        print(f"{args.game_dir} is not in the game list", file=sys.stderr)
        return 1
    return 0


COMMANDS = {
    "versions": command_versions,
    "install": command_install,
    "uninstall": command_uninstall,
    "games": command_games,
}


def main(argv=None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.verbose)

    app = InstallerApplication()
    try:
        if not app.initialize():
            logger.error("Application initialization failed")
            return 1

        return COMMANDS[args.command](app, args)

    except KeyboardInterrupt:
        logger.info("Shutdown requested by user (Ctrl+C)")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error in main: {e}", exc_info=True)
        return 1
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
