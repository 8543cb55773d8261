"""
Journey Form - trip parameters submitted for itinerary generation
or surprise-destination discovery.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional
from datetime import date
from enum import Enum

from ..exceptions import JourneyValidationError


class JourneyType(str, Enum):
    """Kind of journey being planned."""
    NEW = "new"  # User already knows the destination
    SURPRISE = "surprise"  # Destination is recommended by the service


INTEREST_OPTIONS = [
    "Heritage",
    "Adventure",
    "Food",
    "Nature",
    "Spiritual",
    "Beach",
    "Mountains",
    "Culture",
]

MIN_TRAVELERS = 1
MAX_TRAVELERS = 10


class TravelerDetail(BaseModel):
    """One traveler in the group."""
    name: str = ""
    age: Optional[int] = Field(None, ge=0, le=120)

    def label(self) -> str:
        age = "" if self.age is None else str(self.age)
        return f"{self.name.strip()} ({age})"


class TripRequest(BaseModel):
    """The journey form."""
    model_config = ConfigDict(populate_by_name=True)

    destination: str = Field("", description="Where the user wants to go")
    origin: str = Field("", description="Where the user travels from")
    travel_date: Optional[date] = Field(None, alias="date", description="Travel date")
    traveler_count: int = Field(1, description="Number of travelers (1-10)")
    traveler_details: list[TravelerDetail] = Field(default_factory=list)
    budget: Optional[int] = Field(None, ge=0, description="Budget in INR")
    interests: list[str] = Field(default_factory=list)

    @field_validator("traveler_count", mode="before")
    @classmethod
    def clamp_traveler_count(cls, v):
        try:
            count = int(v)
        except (TypeError, ValueError):
            return MIN_TRAVELERS
        return max(MIN_TRAVELERS, min(MAX_TRAVELERS, count))

    @field_validator("travel_date", "budget", mode="before")
    @classmethod
    def blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("interests")
    @classmethod
    def validate_interests(cls, v):
        unknown = [i for i in v if i not in INTEREST_OPTIONS]
        if unknown:
            raise ValueError(f"Unknown interests: {', '.join(unknown)}")
        # Keep form order, drop duplicates
        return [i for i in INTEREST_OPTIONS if i in v]

    @model_validator(mode="after")
    def sync_traveler_details(self):
        # One detail row per traveler, preserving what was already typed
        details = list(self.traveler_details[:self.traveler_count])
        while len(details) < self.traveler_count:
            details.append(TravelerDetail())
        self.traveler_details = details
        return self

    @property
    def travelers_summary(self) -> str:
        labels = [t.label() for t in self.traveler_details]
        labels = [label for label in labels if label.strip() != "()"]
        return ", ".join(labels) or f"{self.traveler_count} traveler(s)"

    def validate_for(self, journey_type: JourneyType):
        """
        Check the form is complete for the given journey type.

        Raises:
            JourneyValidationError: with inline messages per field
        """
        errors = {}
        if journey_type == JourneyType.NEW and not self.destination.strip():
            errors["destination"] = "Destination is required"
        if not self.origin.strip():
            errors["origin"] = "Origin is required"
        if self.travel_date is None:
            errors["date"] = "Travel date is required"
        if self.budget is None:
            errors["budget"] = "Budget is required"
        for index, traveler in enumerate(self.traveler_details):
            if not traveler.name.strip():
                errors[f"traveler_details.{index}.name"] = "Full name is required"
            if traveler.age is None:
                errors[f"traveler_details.{index}.age"] = "Age is required"
        if errors:
            raise JourneyValidationError(errors)

    def with_destination(self, destination: str) -> "TripRequest":
        """Copy of this request targeting a chosen destination."""
        return self.model_copy(update={"destination": destination})

    def to_payload(self) -> dict:
        """Body sent to the itinerary service (and kept as the history snapshot)."""
        return {
            "destination": self.destination,
            "origin": self.origin,
            "date": self.travel_date.isoformat() if self.travel_date else "",
            "travelers": self.travelers_summary,
            "budget": "" if self.budget is None else str(self.budget),
            "interests": list(self.interests),
            "travelerDetails": [
                {"name": t.name, "age": "" if t.age is None else str(t.age)}
                for t in self.traveler_details
            ],
        }
