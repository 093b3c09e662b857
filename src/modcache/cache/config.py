"""Cache configuration management."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import tomli_w

from modcache.errors import ConfigError

DEFAULT_CACHE_DIR = Path.home() / ".modcache"
DEFAULT_STATION_URL = "https://kmf-station.zice.top/"
MISSING_LAST_MODIFIED_POLICIES = ("stale", "fresh")


@dataclass
class CacheConfig:
    """Configuration for the mod cache.

    Attributes:
        cache_dir: Root directory for cache storage (~/.modcache by default).
            Each resolver keeps its own namespace below it.
        station_url: Base URL of the mod station used for ``kmf:`` locators
        default_game: Game locator used by ``install`` when none is given
            (e.g. ``file:///games/wows?version=8765``)
        http_timeout: Timeout in seconds for each HTTP request
        lock_timeout: Seconds to wait for a cache lock before failing
        missing_last_modified: What to do when the origin sends no
            Last-Modified header: 'stale' re-downloads every time, 'fresh'
            reuses any existing cache entry
        user_agent: User-Agent header sent with every request
    """

    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    station_url: str = DEFAULT_STATION_URL
    default_game: Optional[str] = None
    http_timeout: float = 30.0
    lock_timeout: float = 30.0
    missing_last_modified: str = "stale"
    user_agent: str = "modcache"

    def __post_init__(self):
        """Normalize paths and validate values."""
        self.cache_dir = Path(self.cache_dir).expanduser()
        if not self.station_url.endswith("/"):
            self.station_url += "/"
        if self.missing_last_modified not in MISSING_LAST_MODIFIED_POLICIES:
            raise ConfigError(
                f"Invalid missing_last_modified policy: {self.missing_last_modified!r}. "
                f"Expected one of: {', '.join(MISSING_LAST_MODIFIED_POLICIES)}"
            )
        if self.http_timeout <= 0 or self.lock_timeout <= 0:
            raise ConfigError("Timeouts must be positive")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from a TOML file.

        Args:
            config_path: Path to config file. If None, uses ~/.modcache/config.toml.

        Returns:
            CacheConfig instance (defaults if the default file does not exist)

        Raises:
            ConfigError: If an explicit file is missing, or a file is invalid
        """
        explicit = config_path is not None
        if config_path is None:
            config_path = DEFAULT_CACHE_DIR / "config.toml"
        config_path = Path(config_path).expanduser()

        if not config_path.exists():
            if explicit:
                raise ConfigError(f"Config file not found: {config_path}")
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(
                f"Unknown config keys in {config_path}: {', '.join(unknown)}"
            )

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to a TOML file.

        Args:
            config_path: Path to config file. If None, uses cache_dir/config.toml.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.toml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "station_url": self.station_url,
            "http_timeout": self.http_timeout,
            "lock_timeout": self.lock_timeout,
            "missing_last_modified": self.missing_last_modified,
            "user_agent": self.user_agent,
        }
        # TOML has no null
        if self.default_game is not None:
            data["default_game"] = self.default_game

        with open(config_path, "wb") as f:
            tomli_w.dump(data, f)

    def apply_env(self) -> "CacheConfig":
        """Override fields from environment variables.

        Environment variables:
            MODCACHE_CACHE_DIR: Cache directory path
            MODCACHE_STATION_URL: Station base URL
            MODCACHE_DEFAULT_GAME: Default game locator
            MODCACHE_HTTP_TIMEOUT: HTTP timeout in seconds

        Returns:
            self, for chaining

        Raises:
            ConfigError: If a numeric variable cannot be parsed
        """
        if os.getenv("MODCACHE_CACHE_DIR"):
            self.cache_dir = Path(os.getenv("MODCACHE_CACHE_DIR")).expanduser()

        if os.getenv("MODCACHE_STATION_URL"):
            self.station_url = os.getenv("MODCACHE_STATION_URL")
            if not self.station_url.endswith("/"):
                self.station_url += "/"

        if os.getenv("MODCACHE_DEFAULT_GAME"):
            self.default_game = os.getenv("MODCACHE_DEFAULT_GAME")

        if os.getenv("MODCACHE_HTTP_TIMEOUT"):
            try:
                self.http_timeout = float(os.getenv("MODCACHE_HTTP_TIMEOUT"))
            except ValueError as e:
                raise ConfigError(f"Invalid MODCACHE_HTTP_TIMEOUT: {e}") from e

        return self

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from defaults plus environment variables."""
        return cls().apply_env()
