"""Tests for the cache record ledger."""

from datetime import datetime, timezone

import pytest

from modcache.cache.ledger import CacheLedger, CacheRecord, find_by_specifier
from modcache.errors import LedgerCorruptError


@pytest.fixture
def ledger(tmp_path):
    """Create a ledger in a not-yet-existing cache namespace."""
    return CacheLedger(
        tmp_path / "cache" / "web" / "cache_download_record.toml",
        tmp_path / "cache" / ".locks" / "web.ledger.lock",
        lock_timeout=5,
    )


@pytest.fixture
def record():
    """Create a sample record with sub-second precision."""
    return CacheRecord(
        specifier="kmf:abc@1.2",
        source="https://station.test/mod/abc/1.2",
        last_update=datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc),
    )


class TestLedgerLoad:
    """Test loading the ledger."""

    def test_missing_file_is_created_empty(self, ledger):
        """Test bootstrap of a fresh cache root."""
        assert not ledger.path.exists()

        assert ledger.load() == {}

        assert ledger.path.is_file()
        assert ledger.load() == {}

    def test_unparsable_file_raises(self, ledger):
        """Test that invalid TOML is a hard error."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text("this is [not toml")

        with pytest.raises(LedgerCorruptError) as exc_info:
            ledger.load()

        assert exc_info.value.path == ledger.path
        # The corrupt file is left for the user to inspect
        assert ledger.path.read_text() == "this is [not toml"

    def test_missing_field_raises(self, ledger):
        """Test that an incomplete record is a hard error."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text('[abc]\nspecifier = "kmf:abc"\n')

        with pytest.raises(LedgerCorruptError, match="missing field"):
            ledger.load()

    def test_bad_timestamp_raises(self, ledger):
        """Test that an invalid timestamp is a hard error."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text(
            '[abc]\nspecifier = "a"\nsource = "b"\nlast_update = "yesterday"\n'
        )

        with pytest.raises(LedgerCorruptError):
            ledger.load()

    def test_non_table_entry_raises(self, ledger):
        """Test that a scalar at the top level is a hard error."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text('abc = "oops"\n')

        with pytest.raises(LedgerCorruptError, match="not a table"):
            ledger.load()

    def test_hand_written_ledger(self, ledger):
        """Test that a human-edited ledger is read."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text(
            "[abc]\n"
            'specifier = "https://example.com/a.zip"\n'
            'source = "https://cdn.example.com/a.zip"\n'
            'last_update = "2015-10-21T07:28:00.000000+00:00"\n'
        )

        records = ledger.load()

        assert records["abc"].source == "https://cdn.example.com/a.zip"
        assert records["abc"].last_update == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)


class TestLedgerSave:
    """Test saving and round-tripping."""

    def test_round_trip_preserves_values(self, ledger, record):
        """Test that save then load preserves ids, locators and timestamps."""
        ledger.save({"abc": record})

        loaded = ledger.load()

        assert loaded == {"abc": record}
        assert loaded["abc"].last_update.microsecond == 123456

    def test_save_load_is_stable(self, ledger, record):
        """Test that save(load()) leaves the file content unchanged."""
        ledger.save({"abc": record, "def": record})
        first = ledger.path.read_bytes()

        ledger.save(ledger.load())

        assert ledger.path.read_bytes() == first

    def test_timestamp_format(self, ledger, record):
        """Test that timestamps are stored as ISO strings with fractional seconds."""
        ledger.save({"abc": record})
        assert 'last_update = "2024-05-01T10:20:30.123456+00:00"' in ledger.path.read_text()

    def test_save_overwrites(self, ledger, record):
        """Test that save replaces the whole mapping."""
        ledger.save({"abc": record})
        ledger.save({"def": record})
        assert set(ledger.load()) == {"def"}

    def test_no_temp_file_left(self, ledger, record):
        """Test that the temporary file is renamed into place."""
        ledger.save({"abc": record})
        assert [p.name for p in ledger.path.parent.iterdir()] == [ledger.path.name]


class TestLedgerUpdate:
    """Test locked load-modify-save operations."""

    def test_update_inserts(self, ledger, record):
        """Test that update adds a record."""
        ledger.update("abc", record)
        assert ledger.get("abc") == record

    def test_update_keeps_other_records(self, ledger, record):
        """Test that update does not drop unrelated records."""
        ledger.update("abc", record)
        other = CacheRecord("https://x/y.zip", "https://x/y.zip", record.last_update)
        ledger.update("xyz", other)

        assert set(ledger.load()) == {"abc", "xyz"}

    def test_remove(self, ledger, record):
        """Test removing a record."""
        ledger.update("abc", record)

        assert ledger.remove("abc") is True
        assert ledger.remove("abc") is False
        assert ledger.get("abc") is None

    def test_lock_file_location(self, ledger, record):
        """Test that the lock lives outside the namespace directory."""
        ledger.update("abc", record)
        assert ledger.lock_path.parent.is_dir()
        assert ledger.lock_path.parent != ledger.path.parent


class TestFindBySpecifier:
    """Test specifier lookups."""

    def test_finds_matching_record(self, record):
        """Test that the id of the matching record is returned."""
        records = {
            "one": CacheRecord("https://a/1.zip", "https://a/1.zip", record.last_update),
            "two": record,
        }
        assert find_by_specifier(records, "kmf:abc@1.2") == "two"

    def test_no_match(self, record):
        """Test that None is returned without a match."""
        assert find_by_specifier({"two": record}, "kmf:other") is None

    def test_ledger_method(self, ledger, record):
        """Test the ledger convenience wrapper."""
        ledger.update("two", record)
        assert ledger.find_by_specifier("kmf:abc@1.2") == "two"
