"""Shared fixtures: an in-memory HTTP origin and zip archive builder."""

import io
import zipfile
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from modcache.cache.config import CacheConfig

LAST_MODIFIED = "Wed, 21 Oct 2015 07:28:00 GMT"
LATER_MODIFIED = "Thu, 22 Oct 2015 09:00:00 GMT"
STATION_URL = "https://station.test/"


def make_zip(entries: List[Tuple[str, Optional[bytes]]]) -> bytes:
    """Build a zip archive in memory.

    Entries are (name, data) pairs written in the given order; data None
    writes a directory entry (name should end with '/').
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            info = zipfile.ZipInfo(name)
            if data is None:
                info.external_attr = 0o40755 << 16
                zf.writestr(info, b"")
            else:
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, data)
    return buffer.getvalue()


def mark_encrypted(archive: bytes) -> bytes:
    """Set the encryption flag on the first entry of a zip built by make_zip."""
    data = bytearray(archive)
    # Local file header flags at +6, central directory header flags at +8
    for signature, offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = data.find(signature)
        data[start + offset] |= 0x01
    return bytes(data)


class FakeOrigin:
    """Serves registered URLs through httpx.MockTransport and records requests."""

    def __init__(self):
        self.files: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self.redirects: Dict[str, str] = {}
        self.requests: List[Tuple[str, str]] = []
        self.fail = False

    def serve(self, url: str, body: bytes, last_modified: Optional[str] = LAST_MODIFIED):
        self.files[url] = (body, last_modified)

    def redirect(self, source: str, target: str):
        self.redirects[source] = target

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.requests if m == method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append((request.method, url))
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        if url in self.redirects:
            return httpx.Response(302, headers={"Location": self.redirects[url]})
        if url not in self.files:
            return httpx.Response(404)

        body, last_modified = self.files[url]
        headers = {"Content-Length": str(len(body))}
        if last_modified:
            headers["Last-Modified"] = last_modified
        if request.method == "HEAD":
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, headers=headers, content=body)


@pytest.fixture
def origin():
    """Create an empty fake origin."""
    return FakeOrigin()


@pytest.fixture
def client(origin):
    """Create an HTTP client backed by the fake origin."""
    with httpx.Client(
        transport=httpx.MockTransport(origin.handler), follow_redirects=True
    ) as c:
        yield c


@pytest.fixture
def cache_config(tmp_path):
    """Create test cache configuration rooted in a temporary directory."""
    return CacheConfig(
        cache_dir=tmp_path / "cache",
        station_url=STATION_URL,
        lock_timeout=5,
    )


@pytest.fixture
def mod_archive():
    """A small mod archive with a nested directory."""
    return make_zip(
        [
            ("gui/", None),
            ("gui/flash/", None),
            ("gui/flash/icon.png", b"png-bytes"),
            ("readme.txt", b"hello"),
        ]
    )
