"""
Journey History Store - bounded, newest-first list of past itineraries per user.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .storage import LocalStorage, read_json, write_json
from ..models.history import JourneyHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class JourneyHistoryStore:
    """
    Persists ``journey_history_<userId>`` lists.

    Unreadable data is treated as an empty history. The next write
    replaces it, so the store heals itself.
    """

    KEY_PREFIX = "journey_history_"

    def __init__(self, storage: LocalStorage, limit: int = DEFAULT_HISTORY_LIMIT):
        self.storage = storage
        self.limit = limit

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def _load(self, user_id: str) -> List[JourneyHistoryEntry]:
        data = read_json(self.storage, self._key(user_id))
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(f"Journey history for {user_id} is not a list, treating as empty")
            return []

        entries = []
        for item in data:
            try:
                entries.append(JourneyHistoryEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable journey for {user_id}: {e}")
        return entries

    def _save(self, user_id: str, entries: List[JourneyHistoryEntry]):
        write_json(self.storage, self._key(user_id), [e.to_storage() for e in entries])

    def list(self, user_id: str) -> List[JourneyHistoryEntry]:
        """All entries, newest first."""
        # Stable sort keeps insertion order for identical timestamps
        return sorted(self._load(user_id), key=lambda e: e.created_at, reverse=True)

    def get(self, user_id: str, entry_id: str) -> Optional[JourneyHistoryEntry]:
        return next((e for e in self._load(user_id) if e.id == entry_id), None)

    def append(self, user_id: str, entry: JourneyHistoryEntry) -> List[JourneyHistoryEntry]:
        """Add an entry and evict the oldest (by createdAt) beyond the limit."""
        entries = self._load(user_id)
        entries.insert(0, entry)
        # Ties keep the new entry first
        entries.sort(key=lambda e: e.created_at, reverse=True)
        del entries[self.limit:]
        self._save(user_id, entries)
        return entries

    def record(self, user_id: str, itinerary: str, form_data: Dict[str, Any]) -> JourneyHistoryEntry:
        """Create an entry for a freshly generated itinerary and store it."""
        entry = JourneyHistoryEntry.create(itinerary, form_data)
        self.append(user_id, entry)
        logger.info(f"Saved journey {entry.id} to {entry.destination} for {user_id}")
        return entry

    def remove(self, user_id: str, entry_id: str) -> List[JourneyHistoryEntry]:
        """Delete one entry by id; the rest keep their relative order."""
        entries = [e for e in self.list(user_id) if e.id != entry_id]
        self._save(user_id, entries)
        return entries
