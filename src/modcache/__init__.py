"""modcache: Download, cache and install mod archives from web and station locators."""

__version__ = "0.1.0"

from modcache.cache.config import CacheConfig
from modcache.resolvers import ResolverRegistry, build_registry

__all__ = ["CacheConfig", "ResolverRegistry", "build_registry", "__version__"]
