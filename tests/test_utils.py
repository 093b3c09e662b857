"""Tests for utility functions."""

from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath

import pytest

from modcache.utils import (
    format_timestamp,
    generate_locator_id,
    get_scheme,
    is_within,
    parse_timestamp,
    sanitize_file_path,
    sanitize_segment,
)


class TestGetScheme:
    """Test scheme extraction."""

    @pytest.mark.parametrize(
        "locator,expected",
        [
            ("https://example.com/a.zip", "https"),
            ("HTTP://example.com/a.zip", "http"),
            ("kmf:abc@1.2", "kmf"),
            ("kmf://abc", "kmf"),
            ("file:///games/wows", "file"),
            ("just-a-name", ""),
            ("", ""),
        ],
    )
    def test_schemes(self, locator, expected):
        """Test scheme detection for common locators."""
        assert get_scheme(locator) == expected


class TestGenerateLocatorId:
    """Test cache id derivation."""

    def test_known_digest(self):
        """Test the SHA-256 digest of a known string."""
        assert generate_locator_id("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_distinct_locators(self):
        """Test that different locators give different ids."""
        assert generate_locator_id("https://a/x.zip") != generate_locator_id("https://a/y.zip")


class TestSanitize:
    """Test path sanitization."""

    @pytest.mark.parametrize(
        "segment,expected",
        [
            ("file.txt", "file.txt"),
            ("a<b>c.txt", "abc.txt"),
            ("name. ", "name"),
            ("..", ""),
            (".", ""),
            ("CON", "_CON"),
            ("con.txt", "_con.txt"),
            ("tab\there", "tabhere"),
        ],
    )
    def test_sanitize_segment(self, segment, expected):
        """Test segment sanitization rules."""
        assert sanitize_segment(segment) == expected

    def test_segment_truncated(self):
        """Test that long segments are truncated."""
        assert len(sanitize_segment("a" * 300)) == 255

    def test_segment_truncated_to_bytes(self):
        """Test that the limit counts UTF-8 bytes and keeps whole characters."""
        result = sanitize_segment("模" * 100 + ".txt")

        assert result == "模" * 85
        assert len(result.encode("utf-8")) == 255

    def test_truncation_does_not_split_characters(self):
        """Test that a multi-byte character straddling the limit is dropped."""
        result = sanitize_segment("a" + "模" * 100)

        assert result == "a" + "模" * 84
        assert len(result.encode("utf-8")) == 253

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("a/b/c.txt", "a/b/c.txt"),
            ("../../etc/passwd", "etc/passwd"),
            ("/abs/path", "abs/path"),
            ("dir\\sub\\file.txt", "dir/sub/file.txt"),
            ("a/./b//c", "a/b/c"),
            ("../", "."),
        ],
    )
    def test_sanitize_file_path(self, path, expected):
        """Test that entry names become safe relative paths."""
        result = sanitize_file_path(path)
        assert result == PurePosixPath(expected)
        assert not result.is_absolute()
        assert ".." not in result.parts

    def test_is_within(self, tmp_path):
        """Test containment checks."""
        assert is_within(tmp_path / "a" / "b", tmp_path)
        assert not is_within(tmp_path / ".." / "other", tmp_path)


class TestTimestamps:
    """Test ledger timestamp formatting."""

    def test_format_keeps_microseconds(self):
        """Test that zero microseconds are still written."""
        value = datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2015-10-21T07:28:00.000000+00:00"

    def test_format_converts_to_utc(self):
        """Test that offsets are normalized to UTC."""
        value = datetime(2015, 10, 21, 9, 28, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2015-10-21T07:28:00.000000+00:00"

    def test_naive_is_utc(self):
        """Test that naive datetimes are treated as UTC."""
        assert format_timestamp(datetime(2015, 10, 21)) == "2015-10-21T00:00:00.000000+00:00"

    def test_parse_round_trip(self):
        """Test that parse reverses format."""
        value = datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(value)) == value

    def test_parse_invalid(self):
        """Test that invalid strings raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
