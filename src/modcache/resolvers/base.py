"""Base resolver interface.

A resolver owns one locator scheme (or a family of them) and one namespace of
the cache root. It turns a locator into identity metadata, decides whether the
cached copy is current, and refreshes the cache directory when it is not.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

from modcache.cache.ledger import CacheRecord
from modcache.http import ProgressCallback
from modcache.utils import EPOCH


@dataclass(frozen=True)
class ResolveInfo:
    """Identity snapshot of a locator.

    Attributes:
        id: Stable cache id derived from the locator
        locator: Locator that was resolved
        resolved_source: URL actually fetched (after translation and redirects)
        last_modified: Origin last-modified time, None when not provided
        size: Content length in bytes, 0 when not provided
    """

    id: str
    locator: str
    resolved_source: str
    last_modified: Optional[datetime]
    size: int = 0

    @property
    def last_update(self) -> datetime:
        """Timestamp to record in the ledger (epoch when the origin sent none)."""
        return self.last_modified if self.last_modified is not None else EPOCH


class BaseResolver(ABC):
    """Abstract base class for resolvers.

    Resolvers are responsible for:
    1. Locator detection (can_resolve), pure and without I/O
    2. Metadata-only resolution (resolve)
    3. Staleness checks against their ledger (is_up_to_date)
    4. Refreshing the cache directory (cache)
    5. Wiping their namespace (clear_cache)

    Examples:
        Create a custom resolver (minimal implementation):
        >>> class FileResolver(BaseResolver):
        ...     @property
        ...     def name(self) -> str:
        ...         return "file"
        ...
        ...     def can_resolve(self, locator: str) -> bool:
        ...         return get_scheme(locator) == "file"
        ...
        ...     def resolve(self, locator): ...
        ...     def is_up_to_date(self, locator): ...
        ...     def cache(self, locator): ...
        ...     def clear_cache(self): ...
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique resolver name, also used as its cache namespace."""
        pass

    @property
    @abstractmethod
    def cache_dir(self) -> Path:
        """Directory holding this resolver's cache entries and ledger."""
        pass

    @abstractmethod
    def can_resolve(self, locator: str) -> bool:
        """Check if this resolver handles ``locator``.

        Must not perform any I/O.
        """
        pass

    @abstractmethod
    def resolve(self, locator: str) -> ResolveInfo:
        """Resolve identity metadata for ``locator`` without downloading it.

        Raises:
            CannotResolveError: If the locator belongs to another resolver
            NetworkError: On transport or HTTP errors
        """
        pass

    @abstractmethod
    def is_up_to_date(self, locator: str) -> bool:
        """Check whether the cached copy of ``locator`` matches the origin."""
        pass

    @abstractmethod
    def cache(self, locator: str, progress: Optional[ProgressCallback] = None) -> Path:
        """Make sure ``locator`` is cached and current.

        Args:
            locator: Locator to cache
            progress: Optional download progress callback

        Returns:
            Directory containing exactly the archive's extracted contents
        """
        pass

    def cache_resolved(
        self, locator: str, progress: Optional[ProgressCallback] = None
    ) -> Tuple[Path, ResolveInfo]:
        """Cache ``locator`` and return the metadata the decision was based on.

        Resolvers that resolve inside :meth:`cache` should override this so
        the origin is only asked once.

        Returns:
            (cache directory, ResolveInfo)
        """
        info = self.resolve(locator)
        return self.cache(locator, progress=progress), info

    @abstractmethod
    def clear_cache(self) -> None:
        """Remove every cache entry and the ledger of this resolver."""
        pass

    def find_cached(self, locator: str) -> Optional[Path]:
        """Look up an existing cache directory for ``locator`` without network access.

        Returns:
            Cache directory, or None if nothing was cached for the locator
        """
        return None

    def records(self) -> Dict[str, CacheRecord]:
        """Return the ledger of this resolver."""
        return {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, cache_dir={str(self.cache_dir)!r})"
