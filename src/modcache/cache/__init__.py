"""Local cache storage for downloaded mod archives.

Key components:
- CacheConfig: Configuration management
- CacheLedger / CacheRecord: Persisted record of what was cached and when
- extract_archive: Path-sanitizing zip extraction
- replace_dir / ensure_dir / ensure_file: Directory primitives
"""

from modcache.cache.archive import extract_archive
from modcache.cache.config import CacheConfig
from modcache.cache.ledger import CacheLedger, CacheRecord, find_by_specifier
from modcache.cache.store import ensure_dir, ensure_file, replace_dir

__all__ = [
    "CacheConfig",
    "CacheLedger",
    "CacheRecord",
    "find_by_specifier",
    "extract_archive",
    "replace_dir",
    "ensure_dir",
    "ensure_file",
]
