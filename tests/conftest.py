"""Shared fixtures: in-memory storage and mock collaborators."""
import pytest

from smart_voyage.services.auth_gateway import MockAuthGateway
from smart_voyage.services.history_store import JourneyHistoryStore
from smart_voyage.services.itinerary_service import MockItineraryService
from smart_voyage.services.profile_store import ProfileStore
from smart_voyage.services.session_controller import SessionController
from smart_voyage.services.storage import MemoryStorage


PROFILE_DATA = {
    "name": "Ravi Kumar",
    "dob": "1990-04-12",
    "gender": "male",
    "nationality": "Indian",
    "preferredLanguage": "hindi",
}

TRIP_DATA = {
    "destination": "Jaipur, Rajasthan",
    "origin": "Mumbai, Maharashtra",
    "date": "2026-12-20",
    "traveler_count": 2,
    "traveler_details": [
        {"name": "Ravi Kumar", "age": 36},
        {"name": "Asha Kumar", "age": 34},
    ],
    "budget": 50000,
    "interests": ["Heritage", "Food"],
}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def auth():
    return MockAuthGateway()


@pytest.fixture
def service():
    return MockItineraryService()


@pytest.fixture
def profiles(storage):
    return ProfileStore(storage)


@pytest.fixture
def history(storage):
    return JourneyHistoryStore(storage)


@pytest.fixture
def controller(auth, service, profiles, history):
    return SessionController(
        auth=auth,
        service=service,
        profiles=profiles,
        history=history,
        redirect_to="http://127.0.0.1:8000/",
    )
