"""Listing, price-history and cursor persistence."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from models.cursor import RegionCursor
from models.listing import ListingRecord, PriceHistoryEntry

logger = logging.getLogger(__name__)


class ListingStore(ABC):
    """Persistence contract the crawler writes through."""

    @abstractmethod
    def get(self, global_id: str) -> Optional[ListingRecord]:
        pass

    @abstractmethod
    def add(self, record: ListingRecord) -> None:
        pass

    @abstractmethod
    def update(self, record: ListingRecord) -> None:
        pass

    @abstractmethod
    def all(self) -> List[ListingRecord]:
        pass

    @abstractmethod
    def add_price_history(self, entry: PriceHistoryEntry) -> None:
        pass

    @abstractmethod
    def price_history(self, global_id: str) -> List[PriceHistoryEntry]:
        pass

    @abstractmethod
    def get_cursor(self, region: str) -> RegionCursor:
        """Return the region's cursor, or a fresh one starting at backfill page 1."""
        pass

    @abstractmethod
    def save_cursor(self, cursor: RegionCursor) -> None:
        pass

    def flush(self) -> None:
        """Persist pending changes (no-op for in-memory stores)."""
        return None


class InMemoryListingStore(ListingStore):
    """Dictionary-backed store."""

    def __init__(self):
        self.listings: Dict[str, ListingRecord] = {}
        self.history: List[PriceHistoryEntry] = []
        self.cursors: Dict[str, RegionCursor] = {}

    def get(self, global_id: str) -> Optional[ListingRecord]:
        return self.listings.get(global_id)

    def add(self, record: ListingRecord) -> None:
        if record.global_id in self.listings:
            raise ValueError(f"Listing {record.global_id} already exists")
        self.listings[record.global_id] = record

    def update(self, record: ListingRecord) -> None:
        self.listings[record.global_id] = record

    def all(self) -> List[ListingRecord]:
        return list(self.listings.values())

    def add_price_history(self, entry: PriceHistoryEntry) -> None:
        self.history.append(entry)

    def price_history(self, global_id: str) -> List[PriceHistoryEntry]:
        return [entry for entry in self.history if entry.global_id == global_id]

    def get_cursor(self, region: str) -> RegionCursor:
        cursor = self.cursors.get(region)
        if cursor is None:
            return RegionCursor(region=region)
        return RegionCursor.from_dict(cursor.to_dict())

    def save_cursor(self, cursor: RegionCursor) -> None:
        self.cursors[cursor.region] = RegionCursor.from_dict(cursor.to_dict())


class YamlListingStore(InMemoryListingStore):
    """
    In-memory store snapshotted to YAML files in a data folder.

    Files are written atomically (temp file + rename) on ``flush``.
    """

    LISTINGS_FILE = "listings.yaml"
    HISTORY_FILE = "price_history.yaml"
    CURSORS_FILE = "cursors.yaml"

    def __init__(self, folder: str):
        """
        Initialize the store and load existing snapshots.

        Args:
            folder: Directory holding the YAML files (created if missing)
        """
        super().__init__()
        self.folder = Path(folder)
        self.folder.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        for item in self._read(self.LISTINGS_FILE):
            record = ListingRecord.from_dict(item)
            self.listings[record.global_id] = record
        for item in self._read(self.HISTORY_FILE):
            self.history.append(PriceHistoryEntry.from_dict(item))
        for item in self._read(self.CURSORS_FILE):
            cursor = RegionCursor.from_dict(item)
            self.cursors[cursor.region] = cursor

        if self.listings:
            logger.info(f"Loaded {len(self.listings)} listings from {self.folder}")

    def _read(self, filename: str) -> List[Dict[str, Any]]:
        path = self.folder / filename
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data or []

    def flush(self) -> None:
        self._write(self.LISTINGS_FILE, [record.to_dict() for record in self.listings.values()])
        self._write(self.HISTORY_FILE, [entry.to_dict() for entry in self.history])
        self._write(self.CURSORS_FILE, [cursor.to_dict() for cursor in self.cursors.values()])
        logger.debug(f"Flushed {len(self.listings)} listings to {self.folder}")

    def _write(self, filename: str, items: List[Dict[str, Any]]) -> None:
        filepath = self.folder / filename
        content = yaml.dump(
            items,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )

        # Write atomically (temp file + rename)
        temp_path = filepath.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
        temp_path.replace(filepath)
