"""Resolvers turning locators into cached directories.

This package provides:
- BaseResolver / ResolveInfo: the resolver contract and identity snapshot
- WebResolver: http/https archive URLs
- StationResolver: ``kmf:`` mod locators delegated to a mod station
- ResolverRegistry / build_registry: first-match dispatch over resolvers
"""

from modcache.resolvers.base import BaseResolver, ResolveInfo
from modcache.resolvers.registry import ResolverRegistry, build_registry
from modcache.resolvers.station import StationResolver, parse_mod_locator
from modcache.resolvers.web import WebResolver

__all__ = [
    "BaseResolver",
    "ResolveInfo",
    "WebResolver",
    "StationResolver",
    "parse_mod_locator",
    "ResolverRegistry",
    "build_registry",
]
