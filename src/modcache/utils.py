"""Utility functions for modcache."""

import hashlib
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

# Cache layout constants
LEDGER_FILE = "cache_download_record.toml"
LOCKS_DIR = ".locks"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Characters that are illegal in file names on at least one supported platform
_ILLEGAL_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')
_RESERVED_NAMES = {
    "CON",
    "PRN",
    "AUX",
    "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}
_MAX_SEGMENT_BYTES = 255


def get_scheme(locator: str) -> str:
    """Return the lower-cased URI scheme of a locator ('' if it has none).

    Examples:
        >>> get_scheme('HTTPS://example.com/a.zip')
        'https'
        >>> get_scheme('kmf:abc@1.2')
        'kmf'
        >>> get_scheme('no-scheme')
        ''
    """
    try:
        return urlsplit(locator).scheme.lower()
    except ValueError:
        return ""


def generate_locator_id(locator: str) -> str:
    """Derive a stable cache id from a locator string.

    Args:
        locator: Locator string, used verbatim

    Returns:
        SHA-256 hex digest (64 characters)

    Examples:
        >>> len(generate_locator_id('https://example.com/mod.zip'))
        64
    """
    return hashlib.sha256(locator.encode("utf-8")).hexdigest()


def sanitize_segment(segment: str) -> str:
    """Make a single path segment safe to create on the host filesystem.

    Removes control and reserved characters, strips trailing dots and spaces,
    prefixes Windows device names with an underscore and truncates to 255
    UTF-8 bytes. ``.`` and ``..`` come back as empty strings.

    Args:
        segment: One component of an archive entry path

    Returns:
        Sanitized segment, possibly empty

    Examples:
        >>> sanitize_segment('a<b>c.txt')
        'abc.txt'
        >>> sanitize_segment('..')
        ''
        >>> sanitize_segment('CON')
        '_CON'
    """
    cleaned = _ILLEGAL_CHARS.sub("", segment).rstrip(". ")
    if cleaned in ("", ".", ".."):
        return ""
    if cleaned.split(".", 1)[0].upper() in _RESERVED_NAMES:
        cleaned = f"_{cleaned}"
    # Limit is in bytes; never split a code point
    return cleaned.encode("utf-8")[:_MAX_SEGMENT_BYTES].decode("utf-8", "ignore")


def sanitize_file_path(path: str) -> PurePosixPath:
    """Turn an archive entry name into a safe relative path.

    Backslashes are treated as separators, every segment is sanitized and
    empty, ``.`` and ``..`` segments are dropped, so the result never contains
    a parent reference and is never absolute.

    Args:
        path: Entry name as stored in the archive

    Returns:
        Relative path; ``PurePosixPath('.')`` when nothing usable remains

    Examples:
        >>> sanitize_file_path('../../etc/passwd')
        PurePosixPath('etc/passwd')
        >>> sanitize_file_path('dir\\\\sub\\\\file.txt')
        PurePosixPath('dir/sub/file.txt')
    """
    segments = [sanitize_segment(part) for part in path.replace("\\", "/").split("/")]
    return PurePosixPath(*[part for part in segments if part])


def is_within(path: Path, root: Path) -> bool:
    """Check whether ``path`` resolves to a location inside ``root``."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp for the ledger.

    Naive datetimes are taken to be UTC. Microseconds are always written so
    the value round-trips exactly.

    Examples:
        >>> format_timestamp(datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc))
        '2024-05-01T10:20:30.123456+00:00'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse a ledger timestamp back into an aware UTC datetime.

    Raises:
        ValueError: If the string is not an ISO-8601 timestamp
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

