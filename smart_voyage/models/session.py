"""
Session management - authenticated identity and the client view state.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
import time

from .page import Page, PageData
from .profile import Profile


class AppStatus(str, Enum):
    """Top-level state of the client."""
    LOADING = "loading"  # Waiting for the initial session lookup
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class AuthChangeEvent(str, Enum):
    """Session change notifications emitted by the auth gateway."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthUser(BaseModel):
    """Identity returned by the auth gateway."""
    id: str = Field(..., min_length=1)
    email: Optional[str] = None


class AuthSession(BaseModel):
    """A live authenticated session."""
    access_token: str
    refresh_token: str = ""
    expires_at: Optional[int] = Field(None, description="Unix time the access token expires")
    user: AuthUser

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


class SignUpResult(BaseModel):
    """Outcome of a sign up; no session until the email is confirmed."""
    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None


class ModalKind(str, Enum):
    ERROR = "error"
    SUCCESS = "success"
    INFO = "info"


class ModalMessage(BaseModel):
    """Blocking message dialog."""
    title: str
    message: str
    kind: ModalKind = ModalKind.INFO


class Toast(BaseModel):
    """Transient notification."""
    title: str
    description: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class ClientState(BaseModel):
    """Everything a page view needs to render."""
    status: AppStatus
    user: Optional[AuthUser] = None
    profile: Optional[Profile] = None
    profile_incomplete: bool = False
    display_name: str = "Traveler"
    initials: str = "U"
    current_page: Page
    page_data: PageData
    modal: Optional[ModalMessage] = None
    toasts: list[Toast] = Field(default_factory=list)
