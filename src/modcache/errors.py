"""Exceptions raised by modcache.

Every error the engine raises derives from :class:`ModCacheError`, so callers
can catch the whole family at once. Library exceptions (httpx, zipfile, OSError)
are wrapped and chained with ``raise ... from``.
"""

from pathlib import Path
from typing import Optional


class ModCacheError(Exception):
    """Base exception for modcache errors."""

    pass


class CannotResolveError(ModCacheError):
    """Raised when a resolver is handed a locator it does not handle."""

    def __init__(self, locator: str, resolver: Optional[str] = None):
        self.locator = locator
        self.resolver = resolver
        if resolver:
            message = f"Resolver '{resolver}' cannot resolve locator: {locator}"
        else:
            message = f"Cannot resolve locator: {locator}"
        super().__init__(message)


class ModNotFoundError(ModCacheError):
    """Raised when no registered resolver accepts a locator."""

    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Mod not found: no resolver can handle '{locator}'")


class NetworkError(ModCacheError):
    """Raised on transport failures and HTTP error statuses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CacheIOError(ModCacheError):
    """Raised when a filesystem operation on the cache fails."""

    pass


class MalformedArchiveError(ModCacheError):
    """Raised when a downloaded archive is corrupt or unsupported."""

    pass


class LedgerCorruptError(ModCacheError):
    """Raised when the persisted cache ledger cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(
            f"Cache ledger {self.path} is corrupt: {reason}. "
            f"Run 'modcache clear' or delete the file to reset it."
        )


class CacheLockError(ModCacheError):
    """Raised when a cache lock cannot be acquired in time."""

    pass


class ConfigError(ModCacheError):
    """Raised when configuration values are missing or invalid."""

    pass


class GameDirError(ModCacheError):
    """Raised when a game directory does not have the expected layout."""

    pass


class VersionNotFoundError(ModCacheError):
    """Raised when a requested game version is not installed."""

    def __init__(self, version: str, available: Optional[list[str]] = None):
        self.version = version
        self.available = available or []
        message = f"Version not found: {version}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)
