"""Resolver registry and cache orchestration.

The registry keeps resolvers in registration order. A locator is handled by
the first resolver whose ``can_resolve`` accepts it; there is no fallback to
later resolvers when that one fails.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from modcache.cache.config import CacheConfig
from modcache.cache.ledger import CacheRecord
from modcache.errors import ModNotFoundError
from modcache.http import ProgressCallback, create_http_client
from modcache.resolvers.base import BaseResolver, ResolveInfo
from modcache.resolvers.station import StationResolver
from modcache.resolvers.web import WebResolver

logger = logging.getLogger(__name__)


class ResolverRegistry:
    """Ordered collection of resolvers.

    Examples:
        >>> registry = ResolverRegistry()
        >>> registry.register(WebResolver(config))
        >>> registry.register(StationResolver(config))
        >>> path, mod_id = registry.cache('kmf:abc@1.2')
    """

    def __init__(self, resolvers: Optional[Iterable[BaseResolver]] = None):
        """Initialize the registry.

        Args:
            resolvers: Resolvers to register, in priority order
        """
        self._resolvers: List[BaseResolver] = []
        for resolver in resolvers or ():
            self.register(resolver)

    def register(self, resolver: BaseResolver) -> None:
        """Append a resolver.

        Raises:
            ValueError: If a resolver with the same name is already registered
        """
        if any(existing.name == resolver.name for existing in self._resolvers):
            raise ValueError(
                f"Resolver already registered with name: {resolver.name}. "
                f"Cannot register {resolver.__class__.__name__}."
            )
        self._resolvers.append(resolver)

    @property
    def resolvers(self) -> List[BaseResolver]:
        return list(self._resolvers)

    def detect(self, locator: str) -> Optional[BaseResolver]:
        """Return the first resolver that can handle ``locator``, or None."""
        for resolver in self._resolvers:
            if resolver.can_resolve(locator):
                return resolver
        return None

    def get_resolver(self, locator: str) -> BaseResolver:
        """Like :meth:`detect` but fails closed.

        Raises:
            ModNotFoundError: If no resolver handles the locator
        """
        resolver = self.detect(locator)
        if resolver is None:
            raise ModNotFoundError(locator)
        return resolver

    def resolve(self, locator: str) -> ResolveInfo:
        return self.get_resolver(locator).resolve(locator)

    def is_up_to_date(self, locator: str) -> bool:
        return self.get_resolver(locator).is_up_to_date(locator)

    def cache(
        self, locator: str, progress: Optional[ProgressCallback] = None
    ) -> Tuple[Path, str]:
        """Cache ``locator`` with the resolver that owns it.

        Args:
            locator: Locator to cache
            progress: Optional download progress callback

        Returns:
            (cache directory, id reported by the resolver)

        Raises:
            ModNotFoundError: If no resolver handles the locator
        """
        resolver = self.get_resolver(locator)
        logger.debug(f"{locator} handled by {resolver.name}")
        path, info = resolver.cache_resolved(locator, progress=progress)
        return path, info.id

    def cache_many(
        self, locators: Iterable[str], progress: Optional[ProgressCallback] = None
    ) -> List[Tuple[Path, str]]:
        """Cache several locators one after another, stopping at the first error."""
        return [self.cache(locator, progress=progress) for locator in locators]

    def find_cached(self, locator: str) -> Optional[Path]:
        """Offline lookup of an existing cache directory for ``locator``."""
        resolver = self.detect(locator)
        if resolver is None:
            return None
        return resolver.find_cached(locator)

    def records(self) -> Dict[str, Dict[str, CacheRecord]]:
        """Return every resolver's ledger, keyed by resolver name."""
        return {resolver.name: resolver.records() for resolver in self._resolvers}

    def clear_cache(self) -> None:
        """Clear the cache of every resolver."""
        for resolver in self._resolvers:
            resolver.clear_cache()


def build_registry(
    config: Optional[CacheConfig] = None, client: Optional[httpx.Client] = None
) -> ResolverRegistry:
    """Create the default registry: web resolver first, then the station resolver.

    Args:
        config: Cache configuration (defaults if None)
        client: HTTP client shared by all resolvers; created if None

    Returns:
        Configured ResolverRegistry
    """
    config = config or CacheConfig()
    client = client or create_http_client(config)
    return ResolverRegistry(
        [
            WebResolver(config, client=client),
            StationResolver(config, client=client),
        ]
    )
