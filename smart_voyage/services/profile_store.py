"""
Local Profile Store - one profile record per user, keyed by user id.
"""
import logging
from typing import Optional

from pydantic import ValidationError

from .storage import LocalStorage, read_json, write_json
from ..models.profile import Profile

logger = logging.getLogger(__name__)


class ProfileStore:
    """Reads and writes ``profile_<userId>`` records."""

    KEY_PREFIX = "profile_"

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def get(self, user_id: str) -> Optional[Profile]:
        """Return the stored profile, or None if absent or unreadable."""
        data = read_json(self.storage, self._key(user_id))
        if data is None:
            return None
        try:
            return Profile.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored profile for {user_id} is invalid, treating as absent: {e}")
            return None

    def put(self, user_id: str, profile: Profile):
        """Write the profile, replacing any previous record."""
        write_json(self.storage, self._key(user_id), profile.to_storage())
