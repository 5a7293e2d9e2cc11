"""
Purpose: In-memory list management for search history and saved places.
What it does:
- Recent searches / recent destinations: capped at 5, most recent first,
  de-duplicated on insert (same query/name, or same place_id)
- Home / work saved places
- Load / save through an opaque key -> string store (JSON encoded)

Rule: Storage I/O belongs to the store collaborator. Anything with
`get(key) -> Optional[str]` and `set(key, value)` works; InMemoryStore is the
default and what tests use.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from routing.models import Coordinate

logger = logging.getLogger(__name__)

MAX_RECENT_ENTRIES = 5

RECENT_SEARCHES_KEY = "recentSearches"
RECENT_DESTINATIONS_KEY = "recentDestinations"
HOME_LOCATION_KEY = "home_location"
WORK_LOCATION_KEY = "work_location"


class InMemoryStore:
    """Dict-backed key -> string store."""
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RecentSearch:
    query: str
    place_id: Optional[str] = None
    time: datetime = field(default_factory=_utcnow)

    @property
    def label(self) -> str:
        return self.query

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "placeId": self.place_id, "time": self.time.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RecentSearch:
        return cls(
            query=data["query"],
            place_id=data.get("placeId"),
            time=datetime.fromisoformat(data["time"]),
        )


@dataclass(frozen=True)
class RecentDestination:
    name: str
    address: str
    location: Coordinate
    place_id: Optional[str] = None
    time: datetime = field(default_factory=_utcnow)

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "location": {"latitude": self.location.latitude, "longitude": self.location.longitude},
            "placeId": self.place_id,
            "time": self.time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RecentDestination:
        location = data["location"]
        return cls(
            name=data["name"],
            address=data.get("address", ""),
            location=Coordinate(float(location["latitude"]), float(location["longitude"])),
            place_id=data.get("placeId"),
            time=datetime.fromisoformat(data["time"]),
        )


@dataclass(frozen=True)
class SavedPlace:
    address: str
    location: Coordinate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "location": {"latitude": self.location.latitude, "longitude": self.location.longitude},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SavedPlace:
        location = data["location"]
        return cls(
            address=data["address"],
            location=Coordinate(float(location["latitude"]), float(location["longitude"])),
        )


Entry = TypeVar("Entry", RecentSearch, RecentDestination)


def same_entry(a, b) -> bool:
    """Two history entries collide when they share a query/name or a place id."""
    if a.label == b.label:
        return True
    return a.place_id is not None and a.place_id == b.place_id


class RecentList(Generic[Entry]):
    """
    Most-recent-first list with a hard cap and de-duplication on insert.
    """
    def __init__(self, entry_type: type, store_key: str, capacity: int = MAX_RECENT_ENTRIES):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.entry_type = entry_type
        self.store_key = store_key
        self.capacity = capacity
        self._entries: List[Entry] = []

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: Entry) -> None:
        """Insert at the front, dropping any older entry for the same place/query."""
        self._entries = [existing for existing in self._entries if not same_entry(existing, entry)]
        self._entries.insert(0, entry)
        del self._entries[self.capacity:]

    def remove_at(self, index: int) -> Entry:
        return self._entries.pop(index)

    def clear(self) -> None:
        self._entries.clear()

    def most_recent(self) -> Optional[Entry]:
        return self._entries[0] if self._entries else None

    # --- persistence ---

    def save(self, store) -> None:
        store.set(self.store_key, json.dumps([entry.to_dict() for entry in self._entries]))

    def load(self, store) -> None:
        """
        Replace the in-memory list with what the store holds.
        Unreadable entries are skipped; an unreadable blob leaves the list empty.
        """
        raw = store.get(self.store_key)
        self._entries = []
        if not raw:
            return

        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning(f"Stored value for {self.store_key} is not valid JSON; starting empty")
            return

        if not isinstance(items, list):
            logger.warning(f"Stored value for {self.store_key} is not a list; starting empty")
            return

        for item in items:
            try:
                entry = self.entry_type.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable {self.store_key} entry: {e}")
                continue
            # re-apply the insert rules in case the stored list predates them
            if not any(same_entry(existing, entry) for existing in self._entries):
                self._entries.append(entry)
        del self._entries[self.capacity:]


def recent_searches() -> RecentList[RecentSearch]:
    return RecentList(RecentSearch, RECENT_SEARCHES_KEY)


def recent_destinations() -> RecentList[RecentDestination]:
    return RecentList(RecentDestination, RECENT_DESTINATIONS_KEY)


class SavedPlaces:
    """Home and work shortcuts."""
    def __init__(self):
        self.home: Optional[SavedPlace] = None
        self.work: Optional[SavedPlace] = None

    def set_home(self, address: str, location: Coordinate, store=None) -> None:
        self.home = SavedPlace(address, location)
        if store is not None:
            store.set(HOME_LOCATION_KEY, json.dumps(self.home.to_dict()))

    def set_work(self, address: str, location: Coordinate, store=None) -> None:
        self.work = SavedPlace(address, location)
        if store is not None:
            store.set(WORK_LOCATION_KEY, json.dumps(self.work.to_dict()))

    def load(self, store) -> None:
        self.home = self._load_one(store, HOME_LOCATION_KEY)
        self.work = self._load_one(store, WORK_LOCATION_KEY)

    @staticmethod
    def _load_one(store, key: str) -> Optional[SavedPlace]:
        raw = store.get(key)
        if not raw:
            return None
        try:
            return SavedPlace.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable saved place {key}: {e}")
            return None
