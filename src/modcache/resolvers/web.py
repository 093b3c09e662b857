"""Resolver for plain http/https archive URLs."""

import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional, Tuple

import httpx

from modcache.cache.archive import extract_archive
from modcache.cache.config import CacheConfig
from modcache.cache.ledger import CacheLedger, CacheRecord
from modcache.cache.locks import cache_lock
from modcache.cache.store import replace_dir
from modcache.errors import CannotResolveError
from modcache.http import (
    ProgressCallback,
    create_http_client,
    download_to_file,
    fetch_metadata,
)
from modcache.resolvers.base import BaseResolver, ResolveInfo
from modcache.utils import LEDGER_FILE, LOCKS_DIR, generate_locator_id, get_scheme

logger = logging.getLogger(__name__)


class WebResolver(BaseResolver):
    """Caches zip archives served over http/https.

    The cache id of a locator is the SHA-256 digest of the locator string, and
    entries live in ``<cache_dir>/<namespace>/<id>``. Freshness is decided by
    comparing the origin's Last-Modified header with the value recorded in the
    namespace ledger; a current entry costs a single HEAD request.

    Examples:
        >>> resolver = WebResolver(CacheConfig(cache_dir=Path('/tmp/cache')))
        >>> resolver.can_resolve('https://example.com/mod.zip')
        True
        >>> path = resolver.cache('https://example.com/mod.zip')
    """

    SCHEMES = ("http", "https")

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        client: Optional[httpx.Client] = None,
        namespace: str = "web",
    ):
        """Initialize the resolver.

        Args:
            config: Cache configuration (defaults if None)
            client: HTTP client; one is created from ``config`` if None
            namespace: Subdirectory of the cache root owned by this resolver
        """
        self.config = config or CacheConfig()
        self.client = client or create_http_client(self.config)
        self.namespace = namespace
        self._cache_dir = self.config.cache_dir / namespace
        self.lock_dir = self.config.cache_dir / LOCKS_DIR
        self.ledger = CacheLedger(
            self._cache_dir / LEDGER_FILE,
            self.lock_dir / f"{namespace}.ledger.lock",
            lock_timeout=self.config.lock_timeout,
        )

    @property
    def name(self) -> str:
        return self.namespace

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _get_lock_path(self, cache_id: str) -> Path:
        return self.lock_dir / f"{self.namespace}_{cache_id}.lock"

    def can_resolve(self, locator: str) -> bool:
        return get_scheme(locator) in self.SCHEMES

    def resolve(self, locator: str) -> ResolveInfo:
        """Send a HEAD request for ``locator`` and derive its identity.

        Raises:
            CannotResolveError: If the locator is not http/https
            NetworkError: On transport or HTTP errors
        """
        if not self.can_resolve(locator):
            raise CannotResolveError(locator, self.name)

        result = fetch_metadata(self.client, locator)
        return ResolveInfo(
            id=generate_locator_id(locator),
            locator=locator,
            resolved_source=result.url,
            last_modified=result.last_modified,
            size=result.content_length,
        )

    def _is_current(self, info: ResolveInfo, record: Optional[CacheRecord]) -> bool:
        """Compare fresh metadata with the ledger record for the same id."""
        if record is None:
            return False
        if not (self.cache_dir / info.id).is_dir():
            logger.debug(f"cache dir missing for recorded entry {info.id}")
            return False
        if info.last_modified is None:
            return self.config.missing_last_modified == "fresh"
        return record.last_update == info.last_modified

    def is_up_to_date(self, locator: str) -> bool:
        """Check whether the cached copy of ``locator`` is current.

        False when nothing is recorded for the locator; otherwise the origin is
        asked for its Last-Modified time, which must equal the recorded value.

        Raises:
            CannotResolveError: If the locator is not http/https
            NetworkError: On transport or HTTP errors
            LedgerCorruptError: If the ledger cannot be parsed
        """
        if not self.can_resolve(locator):
            raise CannotResolveError(locator, self.name)

        record = self.ledger.get(generate_locator_id(locator))
        if record is None:
            return False
        return self._is_current(self.resolve(locator), record)

    def cache(
        self,
        locator: str,
        progress: Optional[ProgressCallback] = None,
        specifier: Optional[str] = None,
    ) -> Path:
        """Make sure the archive at ``locator`` is extracted in the cache.

        Args:
            locator: http/https URL of a zip archive
            progress: Optional download progress callback
            specifier: Locator to record as requested (defaults to ``locator``)

        Returns:
            Cache directory of the locator

        Raises:
            CannotResolveError: If the locator is not http/https
            NetworkError: On transport or HTTP errors
            MalformedArchiveError: If the download is not a valid zip archive
            CacheIOError: On filesystem errors
            CacheLockError: If the entry is locked by another process
        """
        target, _ = self.cache_resolved(locator, progress=progress, specifier=specifier)
        return target

    def cache_resolved(
        self,
        locator: str,
        progress: Optional[ProgressCallback] = None,
        specifier: Optional[str] = None,
    ) -> Tuple[Path, ResolveInfo]:
        """Like :meth:`cache`, also returning the metadata of the single HEAD."""
        info = self.resolve(locator)
        target = self.cache_dir / info.id

        with cache_lock(self._get_lock_path(info.id), self.config.lock_timeout):
            if self._is_current(info, self.ledger.get(info.id)):
                logger.debug(f"reuse current cache: {target}")
                return target, info
            self._refresh(info, target, specifier or locator, progress)

        return target, info

    def _refresh(
        self,
        info: ResolveInfo,
        target: Path,
        specifier: str,
        progress: Optional[ProgressCallback],
    ) -> None:
        """Download, replace and extract, then record the new state."""
        with tempfile.TemporaryDirectory(prefix="modcache-") as temp_dir:
            archive_path = Path(temp_dir) / "archive.zip"
            download_to_file(self.client, info.resolved_source, archive_path, progress)

            # Forget the old state first so a failed extraction reads as stale
            self.ledger.remove(info.id)
            replace_dir(target)
            logger.debug(f"unzip {archive_path} -> {target}")
            extract_archive(archive_path, target)

        self.ledger.update(
            info.id,
            CacheRecord(
                specifier=specifier,
                source=info.resolved_source,
                last_update=info.last_update,
            ),
        )
        logger.info(f"cached {specifier} -> {target}")

    def clear_cache(self) -> None:
        """Remove every cached archive and the ledger of this namespace."""
        with cache_lock(self.lock_dir / f"{self.namespace}.ledger.lock", self.config.lock_timeout):
            replace_dir(self.cache_dir)
        logger.info(f"cleared cache: {self.cache_dir}")

    def find_cached(self, locator: str) -> Optional[Path]:
        if not self.cache_dir.is_dir():
            return None
        cache_id = self.ledger.find_by_specifier(locator)
        if cache_id is None:
            return None
        path = self.cache_dir / cache_id
        return path if path.is_dir() else None

    def records(self) -> Dict[str, CacheRecord]:
        if not self.cache_dir.is_dir():
            return {}
        return self.ledger.load()
