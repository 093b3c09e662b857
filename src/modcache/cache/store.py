"""Directory primitives used to (re)build cache directories.

These are the only mutations of the cache root outside of archive extraction.
All of them are idempotent and accept the already-correct state.
"""

import logging
import shutil
from pathlib import Path

from modcache.errors import CacheIOError

logger = logging.getLogger(__name__)


def _remove(path: Path) -> None:
    """Remove a file or directory tree; a missing path is a no-op."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        pass


def replace_dir(path: Path) -> Path:
    """Remove ``path`` and everything under it, then recreate it empty.

    Args:
        path: Directory to empty

    Returns:
        The (now empty) directory

    Raises:
        CacheIOError: If the directory cannot be removed or created
    """
    path = Path(path)
    logger.debug(f"empty cache dir: {path}")
    try:
        _remove(path)
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheIOError(f"Cannot replace directory {path}: {e}") from e
    return path


def ensure_dir(path: Path) -> Path:
    """Make sure ``path`` is a directory.

    Creates it when absent. A plain file in its place is removed first.

    Raises:
        CacheIOError: If the directory cannot be created
    """
    path = Path(path)
    try:
        if path.exists() and not path.is_dir():
            logger.warning(f"Replacing file with directory: {path}")
            path.unlink()
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheIOError(f"Cannot create directory {path}: {e}") from e
    return path


def ensure_file(path: Path, default: str = "") -> Path:
    """Make sure ``path`` is a regular file.

    When absent it is created (exclusively) with ``default`` as content. A
    directory in its place is removed first. Existing files are left alone.

    Args:
        path: File to create
        default: Initial content for a newly created file

    Raises:
        CacheIOError: If the file cannot be created
    """
    path = Path(path)
    try:
        if path.is_dir():
            logger.warning(f"Replacing directory with file: {path}")
            shutil.rmtree(path)
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "x", encoding="utf-8") as f:
                f.write(default)
    except FileExistsError:
        # Created concurrently; the existing file wins
        pass
    except OSError as e:
        raise CacheIOError(f"Cannot create file {path}: {e}") from e
    return path
