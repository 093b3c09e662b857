"""Resolver for ``kmf:`` mod locators served by a mod station."""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import quote, urljoin

import httpx

from modcache.cache.config import CacheConfig
from modcache.cache.ledger import CacheRecord
from modcache.errors import CannotResolveError
from modcache.http import ProgressCallback
from modcache.resolvers.base import BaseResolver, ResolveInfo
from modcache.resolvers.web import WebResolver
from modcache.utils import get_scheme

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "latest"


def parse_mod_locator(locator: str) -> Tuple[str, str]:
    """Split a ``kmf:`` locator into mod id and version.

    Args:
        locator: ``kmf:<id>[@<version>]`` (``kmf://<id>[@<version>]`` is accepted too)

    Returns:
        (mod_id, version); version defaults to 'latest'

    Raises:
        CannotResolveError: If the scheme is not kmf or the mod id is empty

    Examples:
        >>> parse_mod_locator('kmf:abc@1.2')
        ('abc', '1.2')
        >>> parse_mod_locator('kmf:abc')
        ('abc', 'latest')
    """
    if get_scheme(locator) != StationResolver.SCHEME:
        raise CannotResolveError(locator, "station")

    path = locator.split(":", 1)[1].strip("/")
    mod_id, _, version = path.partition("@")
    if not mod_id:
        raise CannotResolveError(locator, "station")
    return mod_id, version or DEFAULT_VERSION


class StationResolver(BaseResolver):
    """Translates ``kmf:`` locators into station URLs and delegates to a web resolver.

    ``kmf:abc@1.2`` becomes ``<station_url>mod/abc/1.2``. All network and cache
    work is done by an inner :class:`WebResolver` with its own namespace, so
    cache directories are keyed by the digest of the station URL. The id
    reported by :meth:`resolve` is the mod id, and ledger records keep the
    ``kmf:`` locator as their specifier so the entry can be found again by
    the locator the user typed.
    """

    SCHEME = "kmf"

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        client: Optional[httpx.Client] = None,
        namespace: str = "station",
    ):
        """Initialize the resolver.

        Args:
            config: Cache configuration; ``station_url`` sets the station base
            client: HTTP client shared with the inner web resolver
            namespace: Subdirectory of the cache root owned by this resolver
        """
        self.config = config or CacheConfig()
        self.station_url = self.config.station_url
        self.inner = WebResolver(self.config, client=client, namespace=namespace)

    @property
    def name(self) -> str:
        return self.inner.name

    @property
    def cache_dir(self) -> Path:
        return self.inner.cache_dir

    def can_resolve(self, locator: str) -> bool:
        return get_scheme(locator) == self.SCHEME

    def translate(self, locator: str) -> str:
        """Translate a ``kmf:`` locator into the station download URL.

        Raises:
            CannotResolveError: If the locator is not a valid kmf locator
        """
        mod_id, version = parse_mod_locator(locator)
        return urljoin(
            self.station_url, f"mod/{quote(mod_id, safe='')}/{quote(version, safe='')}"
        )

    def resolve(self, locator: str) -> ResolveInfo:
        """Resolve ``locator`` through the station, reporting the mod id as id."""
        return self._station_info(locator, self.inner.resolve(self.translate(locator)))

    def _station_info(self, locator: str, web_info: ResolveInfo) -> ResolveInfo:
        mod_id, _ = parse_mod_locator(locator)
        return ResolveInfo(
            id=mod_id,
            locator=locator,
            resolved_source=web_info.resolved_source,
            last_modified=web_info.last_modified,
            size=web_info.size,
        )

    def is_up_to_date(self, locator: str) -> bool:
        return self.inner.is_up_to_date(self.translate(locator))

    def cache(self, locator: str, progress: Optional[ProgressCallback] = None) -> Path:
        path, _ = self.cache_resolved(locator, progress=progress)
        return path

    def cache_resolved(
        self, locator: str, progress: Optional[ProgressCallback] = None
    ) -> Tuple[Path, ResolveInfo]:
        web_url = self.translate(locator)
        logger.debug(f"{locator} -> {web_url}")
        path, web_info = self.inner.cache_resolved(web_url, progress=progress, specifier=locator)
        return path, self._station_info(locator, web_info)

    def clear_cache(self) -> None:
        self.inner.clear_cache()

    def find_cached(self, locator: str) -> Optional[Path]:
        if not self.can_resolve(locator):
            return None
        return self.inner.find_cached(locator)

    def records(self) -> Dict[str, CacheRecord]:
        return self.inner.records()
