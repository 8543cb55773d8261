"""
Recommendation results - surprise destinations and packing checklists.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Mapping
from datetime import date


class SurpriseDestination(BaseModel):
    """One recommended destination card."""
    name: str
    description: str = ""


class ChecklistCategories(BaseModel):
    """Packing items grouped by category."""
    clothing: list[str] = Field(default_factory=list)
    essentials: list[str] = Field(default_factory=list)
    electronics: list[str] = Field(default_factory=list)
    medical: list[str] = Field(default_factory=list)


class LuggageChecklist(BaseModel):
    """Weather-aware packing checklist."""
    model_config = ConfigDict(populate_by_name=True)

    weather_summary: str = Field(..., alias="weatherSummary")
    categories: ChecklistCategories


def travel_duration_text(travel_date: Any) -> str:
    """'<Month> travel' for a known date, otherwise 'Not specified'."""
    if isinstance(travel_date, str):
        try:
            travel_date = date.fromisoformat(travel_date[:10])
        except ValueError:
            return "Not specified"
    if isinstance(travel_date, date):
        return f"{travel_date.strftime('%B')} travel"
    return "Not specified"


def checklist_request(form_data: Mapping[str, Any]) -> dict:
    """Body for the luggage checklist call, built from an itinerary's form snapshot."""
    return {
        "destination": form_data.get("destination") or "India",
        "date": form_data.get("date") or "",
        "travelers": form_data.get("travelers") or "1 traveler",
        "interests": list(form_data.get("interests") or []),
        "duration": travel_duration_text(form_data.get("date")),
    }
