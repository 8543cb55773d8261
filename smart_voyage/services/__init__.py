"""Services for Smart Voyage."""
from .storage import LocalStorage, MemoryStorage, FileStorage, SqliteStorage, get_storage
from .profile_store import ProfileStore
from .history_store import JourneyHistoryStore
from .auth_gateway import AuthGateway, MockAuthGateway, SupabaseAuthGateway
from .itinerary_service import ItineraryService, MockItineraryService, SupabaseItineraryService
from .destination_parser import parse_destinations
from .notifications import NotificationCenter
from .session_controller import SessionController, create_controller

__all__ = [
    "LocalStorage",
    "MemoryStorage",
    "FileStorage",
    "SqliteStorage",
    "get_storage",
    "ProfileStore",
    "JourneyHistoryStore",
    "AuthGateway",
    "MockAuthGateway",
    "SupabaseAuthGateway",
    "ItineraryService",
    "MockItineraryService",
    "SupabaseItineraryService",
    "parse_destinations",
    "NotificationCenter",
    "SessionController",
    "create_controller",
]
