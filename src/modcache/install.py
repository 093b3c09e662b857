"""Install cached mods into a game directory.

A game directory keeps one subdirectory per installed client build under
``bin/``, named by its numeric build number. Mods are copied into
``bin/<version>/res_mods``. Game locators are ``file:`` URLs with an optional
``version`` query parameter, e.g. ``file:///games/wows?version=8765``.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit

from modcache.errors import CacheIOError, GameDirError, VersionNotFoundError

logger = logging.getLogger(__name__)

BIN_DIR = "bin"
MODS_DIR = "res_mods"


def parse_game_locator(game: str) -> Tuple[Path, Optional[str]]:
    """Split a game locator into its root directory and requested version.

    Args:
        game: ``file:`` URL, or a plain filesystem path

    Returns:
        (game_root, version or None)

    Raises:
        GameDirError: For schemes other than file

    Examples:
        >>> parse_game_locator('file:///games/wows?version=8765')
        (PosixPath('/games/wows'), '8765')
    """
    parts = urlsplit(game)
    if parts.scheme in ("", "file"):
        version = parse_qs(parts.query).get("version", [None])[0]
        path = unquote(parts.path) if parts.scheme else game
        return Path(path).expanduser(), version
    raise GameDirError(f"Unsupported game locator scheme '{parts.scheme}': {game}")


def get_game_versions(game_root: Path) -> List[str]:
    """List installed game versions, newest first.

    Only directories under ``bin/`` whose name is an integer count as versions.

    Raises:
        GameDirError: If ``bin/`` is missing or is not a directory
    """
    bin_dir = Path(game_root) / BIN_DIR
    if not bin_dir.exists():
        raise GameDirError(f"Illegal game dir structure: {bin_dir} does not exist")
    if not bin_dir.is_dir():
        raise GameDirError(f"Game dir is not a dir: {bin_dir}")

    versions = [
        entry.name
        for entry in bin_dir.iterdir()
        if entry.is_dir() and entry.name.isdigit()
    ]
    return sorted(versions, key=int, reverse=True)


def select_version(game_root: Path, version: Optional[str] = None) -> str:
    """Pick the requested version, or the newest one.

    Raises:
        VersionNotFoundError: If ``version`` is not installed, or none is
        GameDirError: If the game directory is malformed
    """
    versions = get_game_versions(game_root)
    if version is None:
        if not versions:
            raise VersionNotFoundError("latest", versions)
        return versions[0]
    if version not in versions:
        raise VersionNotFoundError(version, versions)
    return version


def install_mod(mod_dir: Path, game: str, version: Optional[str] = None) -> Path:
    """Copy a cached mod directory into a game installation.

    Existing files in the destination are overwritten; other files are kept.

    Args:
        mod_dir: Cache directory returned by a resolver
        game: Game locator (see :func:`parse_game_locator`)
        version: Game version; overrides the locator's ``version`` query

    Returns:
        Directory the mod was copied into

    Raises:
        GameDirError: If the game directory is malformed
        VersionNotFoundError: If the requested version is not installed
        CacheIOError: If copying fails
    """
    game_root, locator_version = parse_game_locator(game)
    selected = select_version(game_root, version or locator_version)
    destination = game_root / BIN_DIR / selected / MODS_DIR

    logger.debug(f"copy {mod_dir} -> {destination}")
    try:
        shutil.copytree(mod_dir, destination, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise CacheIOError(f"Cannot install {mod_dir} into {destination}: {e}") from e
    return destination
