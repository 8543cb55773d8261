"""Data models for Smart Voyage."""
from .profile import Profile, Gender, Language, parse_profile
from .journey import TripRequest, TravelerDetail, JourneyType, INTEREST_OPTIONS
from .history import JourneyHistoryEntry
from .recommendation import SurpriseDestination, LuggageChecklist
from .page import Page, PageState, build_page_data
from .session import AppStatus, AuthChangeEvent, AuthSession, AuthUser, ClientState

__all__ = [
    "Profile",
    "Gender",
    "Language",
    "parse_profile",
    "TripRequest",
    "TravelerDetail",
    "JourneyType",
    "INTEREST_OPTIONS",
    "JourneyHistoryEntry",
    "SurpriseDestination",
    "LuggageChecklist",
    "Page",
    "PageState",
    "build_page_data",
    "AppStatus",
    "AuthChangeEvent",
    "AuthSession",
    "AuthUser",
    "ClientState",
]
