"""Cache record ledger.

The ledger (``cache_download_record.toml``) maps a cache id to the locator
that was requested, the source that was actually downloaded, and the origin's
last-modified timestamp at the time of download::

    [<id>]
    specifier = "kmf:abc@1.2"
    source = "https://kmf-station.zice.top/mod/abc/1.2"
    last_update = "2024-05-01T10:20:30.123456+00:00"

A record is written only after its cache directory has been fully extracted.
An unparsable ledger is always a hard error (:class:`LedgerCorruptError`); it is
never reset behind the user's back.
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import tomli_w

from modcache.cache.locks import cache_lock
from modcache.cache.store import ensure_file
from modcache.errors import CacheIOError, LedgerCorruptError
from modcache.utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_RECORD_FIELDS = ("specifier", "source", "last_update")


@dataclass
class CacheRecord:
    """One ledger entry.

    Attributes:
        specifier: Locator originally requested by the caller
        source: Locator actually downloaded (after translation and redirects)
        last_update: Origin last-modified timestamp recorded at download time
    """

    specifier: str
    source: str
    last_update: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "specifier": self.specifier,
            "source": self.source,
            "last_update": format_timestamp(self.last_update),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "CacheRecord":
        """Build a record from its TOML table.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field has the wrong type or a bad timestamp
        """
        for field in _RECORD_FIELDS:
            if not isinstance(data[field], str):
                raise ValueError(f"field '{field}' must be a string")
        return cls(
            specifier=data["specifier"],
            source=data["source"],
            last_update=parse_timestamp(data["last_update"]),
        )


def find_by_specifier(records: Dict[str, CacheRecord], specifier: str) -> Optional[str]:
    """Find the id of the record created for ``specifier``.

    Args:
        records: Ledger contents
        specifier: Locator as originally requested

    Returns:
        Matching id, or None
    """
    for record_id, record in records.items():
        if record.specifier == specifier:
            return record_id
    return None


class CacheLedger:
    """Reads and writes one resolver's ledger file.

    The file is rewritten in full on every save (temp file + ``os.replace``).
    :meth:`update` and :meth:`remove` hold a file lock across load-modify-save
    so concurrent processes do not drop each other's records.
    """

    def __init__(self, path: Path, lock_path: Path, lock_timeout: float = 30):
        """Initialize the ledger.

        Args:
            path: Ledger file location
            lock_path: Lock file used around load-modify-save
            lock_timeout: Seconds to wait for the lock
        """
        self.path = Path(path)
        self.lock_path = Path(lock_path)
        self.lock_timeout = lock_timeout

    def load(self) -> Dict[str, CacheRecord]:
        """Read all records, creating an empty ledger if none exists.

        Returns:
            Mapping of id to record

        Raises:
            LedgerCorruptError: If the file cannot be parsed
            CacheIOError: If the file cannot be read or created
        """
        if not self.path.is_file():
            logger.debug(f"creating empty cache ledger: {self.path}")
            ensure_file(self.path, tomli_w.dumps({}))

        try:
            with open(self.path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise LedgerCorruptError(self.path, str(e)) from e
        except OSError as e:
            raise CacheIOError(f"Cannot read cache ledger {self.path}: {e}") from e

        records = {}
        for record_id, table in raw.items():
            if not isinstance(table, dict):
                raise LedgerCorruptError(self.path, f"entry '{record_id}' is not a table")
            try:
                records[record_id] = CacheRecord.from_dict(table)
            except KeyError as e:
                raise LedgerCorruptError(
                    self.path, f"entry '{record_id}' is missing field {e}"
                ) from e
            except ValueError as e:
                raise LedgerCorruptError(self.path, f"entry '{record_id}': {e}") from e
        return records

    def save(self, records: Dict[str, CacheRecord]) -> None:
        """Overwrite the ledger with ``records``.

        Raises:
            CacheIOError: If the file cannot be written
        """
        data = {record_id: record.to_dict() for record_id, record in records.items()}
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                tomli_w.dump(data, f)
            os.replace(temp_path, self.path)
        except OSError as e:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_error:
                    logger.warning(f"Failed to clean up temp file {temp_path}: {cleanup_error}")
            raise CacheIOError(f"Cannot write cache ledger {self.path}: {e}") from e

    def get(self, record_id: str) -> Optional[CacheRecord]:
        """Get the record for ``record_id``, or None."""
        return self.load().get(record_id)

    def find_by_specifier(self, specifier: str) -> Optional[str]:
        """Find the id whose record was created for ``specifier``."""
        return find_by_specifier(self.load(), specifier)

    def update(self, record_id: str, record: CacheRecord) -> None:
        """Insert or replace one record and persist the ledger.

        Raises:
            CacheLockError: If the ledger lock cannot be acquired
        """
        with cache_lock(self.lock_path, self.lock_timeout):
            records = self.load()
            records[record_id] = record
            self.save(records)
        logger.debug(f"ledger updated: {record_id} -> {record.source}")

    def remove(self, record_id: str) -> bool:
        """Remove one record.

        Returns:
            True if a record was removed
        """
        with cache_lock(self.lock_path, self.lock_timeout):
            records = self.load()
            if record_id not in records:
                return False
            del records[record_id]
            self.save(records)
        return True

