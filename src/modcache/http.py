"""HTTP helpers: client construction, HEAD metadata requests, and streamed downloads.

The engine keeps exactly one freshness layer, the cache ledger. The client
built here has no response cache and every request carries
``Cache-Control: no-cache`` so intermediaries revalidate with the origin.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Callable, Optional

import httpx

from modcache.cache.config import CacheConfig
from modcache.errors import CacheIOError, NetworkError

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache"}
DOWNLOAD_CHUNK_SIZE = 1 << 16

# Called with (bytes_downloaded, total_bytes or None)
ProgressCallback = Callable[[int, Optional[int]], None]


@dataclass(frozen=True)
class HeadResult:
    """Metadata returned by a HEAD request.

    Attributes:
        url: Final URL after redirects
        last_modified: Parsed Last-Modified header (UTC), None if absent
        content_length: Content-Length header, 0 if absent
    """

    url: str
    last_modified: Optional[datetime]
    content_length: int


def create_http_client(config: Optional[CacheConfig] = None) -> httpx.Client:
    """Create the httpx client shared by the resolvers.

    Args:
        config: Cache configuration (defaults if None)

    Returns:
        Client following redirects, with the configured timeout and User-Agent
    """
    config = config or CacheConfig()
    client = httpx.Client(
        timeout=httpx.Timeout(config.http_timeout),
        follow_redirects=True,
        headers={"User-Agent": config.user_agent},
    )
    logger.debug(f"HTTP client created (timeout={config.http_timeout}s)")
    return client


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an HTTP date header into an aware UTC datetime.

    Args:
        value: Header value, e.g. 'Wed, 21 Oct 2015 07:28:00 GMT'

    Returns:
        Datetime in UTC, or None when missing or unparsable

    Examples:
        >>> parse_http_date('Wed, 21 Oct 2015 07:28:00 GMT')
        datetime.datetime(2015, 10, 21, 7, 28, tzinfo=datetime.timezone.utc)
        >>> parse_http_date('garbage') is None
        True
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.warning(f"Ignoring unparsable date header: {value!r}")
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_content_length(value: Optional[str]) -> int:
    """Parse a Content-Length header, returning 0 when missing or invalid."""
    if not value:
        return 0
    try:
        return max(0, int(value))
    except ValueError:
        return 0


def _raise_for_status(response: httpx.Response) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            f"HTTP {response.status_code} for {response.request.method} {response.url}",
            status_code=response.status_code,
        ) from e


def fetch_metadata(client: httpx.Client, url: str) -> HeadResult:
    """Fetch metadata for ``url`` without downloading the body.

    Sends a HEAD request, following redirects.

    Raises:
        NetworkError: On transport errors or an HTTP error status
    """
    try:
        response = client.head(url, headers=NO_CACHE_HEADERS, follow_redirects=True)
    except httpx.HTTPError as e:
        raise NetworkError(f"HEAD {url} failed: {e}") from e

    _raise_for_status(response)
    headers = response.headers
    result = HeadResult(
        url=str(response.url),
        last_modified=parse_http_date(headers.get("Last-Modified")),
        content_length=parse_content_length(headers.get("Content-Length")),
    )
    logger.debug(
        f"HEAD {url}: final={result.url} last_modified={result.last_modified} "
        f"size={result.content_length}"
    )
    return result


def download_to_file(
    client: httpx.Client,
    url: str,
    destination: Path,
    progress: Optional[ProgressCallback] = None,
) -> int:
    """Stream the body of ``url`` into a new file.

    Args:
        client: HTTP client
        url: URL to GET
        destination: File to create; must not exist
        progress: Optional callback invoked after every chunk

    Returns:
        Number of bytes written

    Raises:
        NetworkError: On transport errors or an HTTP error status
        CacheIOError: If the destination cannot be written
    """
    written = 0
    try:
        with client.stream(
            "GET", url, headers=NO_CACHE_HEADERS, follow_redirects=True
        ) as response:
            _raise_for_status(response)
            total = parse_content_length(response.headers.get("Content-Length")) or None
            logger.info(f"downloading {response.url}")
            with open(destination, "xb") as f:
                for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if progress is not None:
                        progress(written, total)
    except httpx.HTTPError as e:
        raise NetworkError(f"GET {url} failed: {e}") from e
    except OSError as e:
        raise CacheIOError(f"Cannot write download to {destination}: {e}") from e

    logger.debug(f"download completed: {written} bytes")
    return written
