"""
Journey History - immutable records of previously generated itineraries.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from datetime import datetime, timezone
import random
import string

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_journey_id(now: Optional[datetime] = None) -> str:
    """Time + random derived id, e.g. ``journey_1718000000000_k3j9x0a1b``."""
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"journey_{millis}_{suffix}"


class JourneyHistoryEntry(BaseModel):
    """A saved itinerary. Entries are never edited, only deleted."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    destination: str = "Unknown"
    origin: str = ""
    travel_date: str = Field("", alias="date")
    itinerary_text: str = Field(..., min_length=1, alias="itinerary")
    form_data: dict[str, Any] = Field(default_factory=dict, alias="formData")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt"
    )

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        itinerary: str,
        form_data: dict[str, Any],
        now: Optional[datetime] = None
    ) -> "JourneyHistoryEntry":
        """Build a new entry from a generated itinerary and its form snapshot."""
        now = now or datetime.now(timezone.utc)
        return cls(
            id=new_journey_id(now),
            destination=form_data.get("destination") or "Unknown",
            origin=form_data.get("origin") or "",
            travel_date=form_data.get("date") or "",
            itinerary_text=itinerary,
            form_data=dict(form_data),
            created_at=now,
        )

    def to_storage(self) -> dict:
        """Serialize using the stored (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True)
