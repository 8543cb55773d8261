"""
Itinerary/Recommendation Service - remote text generation.
Supports Supabase edge functions and an offline mock.
"""
import logging
from datetime import date
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from ..config import settings, get_supabase_config
from ..exceptions import GenerationError
from ..models.recommendation import LuggageChecklist

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]

# Edge function names and the response field each one answers with
GENERATE_ITINERARY = "generate-itinerary"
FIND_SURPRISE = "find-surprise"
LUGGAGE_CHECKLIST = "generate-luggage-checklist"
CHATBOT = "chatbot"

RESPONSE_FIELDS = {
    GENERATE_ITINERARY: "itinerary",
    FIND_SURPRISE: "recommendations",
    LUGGAGE_CHECKLIST: "luggageChecklist",
    CHATBOT: "reply",
}


class ItineraryService:
    """Request/response calls to the generation backend."""

    async def invoke(self, function: str, body: dict) -> Any:
        """
        Call a function and return its response field.

        Raises:
            GenerationError: on transport, HTTP or payload failure
        """
        raise NotImplementedError

    async def generate_itinerary(self, payload: dict) -> str:
        text = str(await self.invoke(GENERATE_ITINERARY, payload))
        if not text.strip():
            raise GenerationError(GENERATE_ITINERARY, "The itinerary came back empty")
        return text

    async def find_surprise(self, payload: dict) -> str:
        return str(await self.invoke(FIND_SURPRISE, payload))

    async def generate_luggage_checklist(self, payload: dict) -> LuggageChecklist:
        data = await self.invoke(LUGGAGE_CHECKLIST, payload)
        try:
            return LuggageChecklist.model_validate(data)
        except ValidationError as e:
            raise GenerationError(LUGGAGE_CHECKLIST, "Malformed luggage checklist") from e

    async def chat(self, message: str) -> str:
        return str(await self.invoke(CHATBOT, {"message": message}))

    async def aclose(self):
        pass


class SupabaseItineraryService(ItineraryService):
    """Invokes edge functions under ``/functions/v1``."""

    def __init__(
        self,
        functions_url: str,
        anon_key: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.anon_key = anon_key
        self.token_provider = token_provider
        self.client = httpx.AsyncClient(
            base_url=functions_url,
            headers={"apikey": anon_key},
            timeout=timeout,
            transport=transport,
        )

    def _auth_headers(self) -> dict:
        # Calls run as the signed-in user when there is one
        token = self.token_provider() if self.token_provider else None
        return {"Authorization": f"Bearer {token or self.anon_key}"}

    async def invoke(self, function: str, body: dict) -> Any:
        try:
            response = await self.client.post(
                f"/{function}", json=body, headers=self._auth_headers()
            )
        except httpx.HTTPError as e:
            raise GenerationError(function, f"Could not reach the {function} service: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = None
            if isinstance(data, dict):
                message = data.get("error") or data.get("message")
            raise GenerationError(function, message or f"{function} failed ({response.status_code})")

        field = RESPONSE_FIELDS[function]
        if not isinstance(data, dict) or data.get(field) is None:
            raise GenerationError(function, f"{function} returned no {field}")
        return data[field]

    async def aclose(self):
        await self.client.aclose()


class MockItineraryService(ItineraryService):
    """
    Offline generation with canned, form-aware answers.
    Produces the same response shapes as the edge functions.
    """

    SURPRISE_CATALOG = {
        "Beach": ("Gokarna, Karnataka", "Quiet beaches, cliff walks and temple-town calm."),
        "Mountains": ("Tawang, Arunachal Pradesh", "High passes, monasteries and snow views."),
        "Heritage": ("Hampi, Karnataka", "Boulder landscapes around the ruins of Vijayanagara."),
        "Adventure": ("Rishikesh, Uttarakhand", "White-water rafting and Himalayan treks."),
        "Food": ("Amritsar, Punjab", "Kulchas, lassi and the langar at the Golden Temple."),
        "Nature": ("Munnar, Kerala", "Tea estates, mist and the Eravikulam grasslands."),
        "Spiritual": ("Varanasi, Uttar Pradesh", "Ghats, evening aarti and ancient lanes."),
        "Culture": ("Udaipur, Rajasthan", "Lake palaces, folk music and miniature painting."),
    }
    DEFAULT_PICKS = ["Heritage", "Nature", "Beach"]

    async def invoke(self, function: str, body: dict) -> Any:
        logger.debug(f"Mock invoke {function}")
        if function == GENERATE_ITINERARY:
            return self._itinerary(body)
        if function == FIND_SURPRISE:
            return self._surprise(body)
        if function == LUGGAGE_CHECKLIST:
            return self._checklist(body)
        if function == CHATBOT:
            return self._reply(body.get("message", ""))
        raise GenerationError(function, f"Unknown function {function}")

    def _itinerary(self, body: dict) -> str:
        destination = body.get("destination") or "your destination"
        interests = ", ".join(body.get("interests") or []) or "general sightseeing"
        lines = [
            f"# Your trip to {destination}",
            "",
            f"**From:** {body.get('origin') or 'Not specified'}  ",
            f"**Date:** {body.get('date') or 'Not specified'}  ",
            f"**Travelers:** {body.get('travelers') or '1 traveler'}  ",
            f"**Budget:** INR {body.get('budget') or 'flexible'}",
            "",
            "## Day 1: Arrival",
            f"- Travel from {body.get('origin') or 'home'} and check in",
            f"- Evening walk around central {destination}",
            "",
            "## Day 2: Explore",
            f"- Morning focused on {interests}",
            "- Local lunch and an afternoon at the main market",
            "",
            "## Day 3: Departure",
            "- Souvenir shopping and return journey",
        ]
        return "\n".join(lines)

    def _surprise(self, body: dict) -> str:
        picks = [i for i in body.get("interests") or [] if i in self.SURPRISE_CATALOG]
        for fallback in self.DEFAULT_PICKS:
            if len(picks) >= 3:
                break
            if fallback not in picks:
                picks.append(fallback)

        parts = ["Here are three places we think you'll love:", ""]
        for number, interest in enumerate(picks[:3], start=1):
            name, description = self.SURPRISE_CATALOG[interest]
            parts.append(f"## {number}. {name}")
            parts.append(description)
            parts.append("")
        return "\n".join(parts)

    def _checklist(self, body: dict) -> dict:
        try:
            month = date.fromisoformat(str(body.get("date"))[:10]).month
        except ValueError:
            month = None

        if month in (6, 7, 8, 9):
            summary = "Monsoon season: warm with frequent rain"
            clothing = ["Quick-dry t-shirts (3-4)", "Light rain jacket", "Waterproof sandals"]
        elif month in (11, 12, 1, 2):
            summary = "Winter: cool days and cold nights"
            clothing = ["Thermal inner wear (2)", "Warm jacket", "Woollen socks (3 pairs)"]
        elif month in (3, 4, 5):
            summary = "Summer: hot and dry"
            clothing = ["Light cotton t-shirts (4-5)", "Wide-brim hat", "Breathable trousers (2)"]
        else:
            summary = "Moderate weather expected"
            clothing = ["Light cotton t-shirts (2-3)", "Comfortable pants/shorts (2)", "1 Light jacket"]

        return {
            "weatherSummary": summary,
            "categories": {
                "clothing": clothing,
                "essentials": ["ID Proof (Aadhar/Passport)", "Flight/Train Tickets", "Hotel Bookings printout"],
                "electronics": ["Mobile Charger", "Power Bank", "Camera (optional)"],
                "medical": ["Personal Medications", "First-aid Kit", "Sunscreen"],
            },
        }

    def _reply(self, message: str) -> str:
        if not message.strip():
            return "Ask me anything about planning your trip!"
        return f"Good question! For \"{message.strip()}\", start a new journey and I'll build a plan around it."


def create_itinerary_service(token_provider: Optional[TokenProvider] = None) -> ItineraryService:
    """Create the generation service for one client, based on settings."""
    if settings.functions_provider == "supabase":
        config = get_supabase_config()
        return SupabaseItineraryService(
            config["functions_url"],
            config["anon_key"],
            token_provider=token_provider,
            timeout=config["timeout"],
        )
    return MockItineraryService()
