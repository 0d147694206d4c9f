"""Unit tests for listing, price-history and cursor persistence."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import datetime

import pytest
import yaml

from models.constants import ListingStatus
from models.cursor import RegionCursor
from models.listing import ListingRecord, PriceHistoryEntry
from utils.storage import InMemoryListingStore, YamlListingStore


class TestRegionCursor:
    """Test backfill cursor movement."""

    def test_advance_and_reset(self):
        """Test that a non-empty page advances and an empty page resets to 1."""
        cursor = RegionCursor(region="amsterdam")
        cursor.advance_backfill(15)
        cursor.advance_backfill(15)
        assert cursor.next_backfill_page == 3

        cursor.advance_backfill(0)
        assert cursor.next_backfill_page == 1

    def test_round_trip(self):
        """Test dictionary serialization."""
        cursor = RegionCursor("utrecht", 4, datetime(2024, 5, 1, 12, 0), None)
        restored = RegionCursor.from_dict(cursor.to_dict())

        assert restored == cursor


class TestInMemoryListingStore:
    """Test the dictionary-backed store."""

    def test_add_get_update(self):
        """Test the basic record lifecycle."""
        store = InMemoryListingStore()
        store.add(ListingRecord(global_id="1", address="Damrak 1"))

        record = store.get("1")
        record.price = 500000.0
        store.update(record)

        assert store.get("1").price == 500000.0
        assert store.get("2") is None
        assert len(store.all()) == 1

    def test_duplicate_add_rejected(self):
        """Test that adding a known id is an error."""
        store = InMemoryListingStore()
        store.add(ListingRecord(global_id="1"))

        with pytest.raises(ValueError):
            store.add(ListingRecord(global_id="1"))

    def test_price_history_per_listing(self):
        """Test that history is filtered by listing id."""
        store = InMemoryListingStore()
        store.add_price_history(PriceHistoryEntry("1", 500000.0))
        store.add_price_history(PriceHistoryEntry("2", 600000.0))
        store.add_price_history(PriceHistoryEntry("1", 480000.0))

        assert [entry.price for entry in store.price_history("1")] == [500000.0, 480000.0]

    def test_unknown_cursor_starts_at_page_one(self):
        """Test that a never-seen region gets a fresh cursor."""
        cursor = InMemoryListingStore().get_cursor("haarlem")

        assert cursor.region == "haarlem"
        assert cursor.next_backfill_page == 1
        assert cursor.last_recent_scrape is None

    def test_cursor_changes_need_save(self):
        """Test that cursors are copied on read and on save."""
        store = InMemoryListingStore()
        cursor = store.get_cursor("amsterdam")
        cursor.advance_backfill(10)
        assert store.get_cursor("amsterdam").next_backfill_page == 1

        store.save_cursor(cursor)
        assert store.get_cursor("amsterdam").next_backfill_page == 2


class TestYamlListingStore:
    """Test YAML snapshots."""

    def test_flush_and_reload(self, tmp_path):
        """Test that a new store instance reads back what was flushed."""
        store = YamlListingStore(str(tmp_path))
        store.add(ListingRecord(
            global_id="43117443",
            address="Damrak 1",
            price=500000.0,
            status=ListingStatus.AVAILABLE,
            features={"Wonen": "85 m²"},
        ))
        store.add_price_history(PriceHistoryEntry("43117443", 500000.0))
        cursor = store.get_cursor("amsterdam")
        cursor.advance_backfill(15)
        store.save_cursor(cursor)
        store.flush()

        reloaded = YamlListingStore(str(tmp_path))
        record = reloaded.get("43117443")

        assert record.address == "Damrak 1"
        assert record.status == ListingStatus.AVAILABLE
        assert record.features == {"Wonen": "85 m²"}
        assert len(reloaded.price_history("43117443")) == 1
        assert reloaded.get_cursor("amsterdam").next_backfill_page == 2

    def test_files_are_plain_yaml(self, tmp_path):
        """Test the snapshot layout and that no temp files remain."""
        store = YamlListingStore(str(tmp_path / "data"))
        store.add(ListingRecord(global_id="1", address="Prinsengracht 263"))
        store.flush()

        with open(tmp_path / "data" / "listings.yaml", "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        assert data[0]["global_id"] == "1"
        assert data[0]["status"] == "Unknown"
        assert not list((tmp_path / "data").glob("*.tmp"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
