"""Cross-process locks for the cache root."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from modcache.errors import CacheIOError, CacheLockError


@contextmanager
def cache_lock(lock_path: Path, timeout: float = 30) -> Iterator[None]:
    """Hold a file lock for the duration of the block.

    Args:
        lock_path: Lock file; its directory is created if needed
        timeout: Seconds to wait before giving up

    Raises:
        CacheLockError: If the lock is not acquired within ``timeout``
    """
    lock_path = Path(lock_path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheIOError(f"Cannot create lock directory {lock_path.parent}: {e}") from e

    lock = FileLock(lock_path, timeout=timeout)
    try:
        lock.acquire()
    except Timeout as e:
        raise CacheLockError(
            f"Timeout acquiring lock {lock_path} after {timeout} seconds"
        ) from e
    try:
        yield
    finally:
        lock.release()
