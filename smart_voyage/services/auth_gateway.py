"""
Auth Gateway - session lifecycle from the auth platform.
Supports Supabase (GoTrue REST API) and an in-memory mock.
"""
import logging
import time
import uuid
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from ..config import settings, get_supabase_config
from ..exceptions import AuthError
from ..models.session import AuthChangeEvent, AuthSession, AuthUser, SignUpResult

logger = logging.getLogger(__name__)

SessionListener = Callable[[AuthChangeEvent, Optional[AuthSession]], None]


class Subscription:
    """Handle returned by ``on_session_change``."""

    def __init__(self, listeners: list, callback: SessionListener):
        self._listeners = listeners
        self.callback = callback

    def unsubscribe(self):
        if self.callback in self._listeners:
            self._listeners.remove(self.callback)


class AuthGateway:
    """
    Common behaviour of auth gateways.

    Subclasses keep ``self._session`` current and call ``_emit`` whenever
    it changes; listeners are notified synchronously in subscription order.
    """

    def __init__(self):
        self._session: Optional[AuthSession] = None
        self._listeners: list[SessionListener] = []

    def on_session_change(self, callback: SessionListener) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    def _emit(self, event: AuthChangeEvent, session: Optional[AuthSession]):
        logger.debug(f"Auth event {event.value}")
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                # One broken listener must not stop the others
                logger.exception(f"Session listener failed on {event.value}")

    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    async def sign_up(self, email: str, password: str, redirect_to: str) -> SignUpResult:
        raise NotImplementedError

    async def sign_out(self):
        raise NotImplementedError

    async def get_session(self) -> Optional[AuthSession]:
        raise NotImplementedError

    async def aclose(self):
        self._listeners.clear()


class SupabaseAuthGateway(AuthGateway):
    """Talks to a Supabase project's ``/auth/v1`` endpoints."""

    def __init__(
        self,
        auth_url: str,
        anon_key: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__()
        self.client = httpx.AsyncClient(
            base_url=auth_url,
            headers={"apikey": anon_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise AuthError(f"Could not reach the sign-in service: {e}") from e

        if response.is_error:
            raise AuthError(self._error_message(response))
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AuthError("Unexpected response from the sign-in service") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            for key in ("msg", "error_description", "message", "error"):
                if isinstance(body.get(key), str) and body[key]:
                    return body[key]
        return f"Authentication failed ({response.status_code})"

    @staticmethod
    def _parse_session(data: dict) -> AuthSession:
        try:
            expires_at = data.get("expires_at")
            if expires_at is None and data.get("expires_in") is not None:
                expires_at = int(time.time()) + int(data["expires_in"])
            return AuthSession(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token") or "",
                expires_at=expires_at,
                user=AuthUser.model_validate(data["user"]),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise AuthError("Malformed session returned by the sign-in service") from e

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = await self._request(
            "POST", "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = self._parse_session(data)
        self._session = session
        logger.info(f"Signed in as {session.user.id}")
        self._emit(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, redirect_to: str) -> SignUpResult:
        data = await self._request(
            "POST", "/signup",
            params={"redirect_to": redirect_to},
            json={"email": email, "password": password},
        )

        # Auto-confirmed projects return a session, others just the user
        if data.get("access_token"):
            session = self._parse_session(data)
            self._session = session
            self._emit(AuthChangeEvent.SIGNED_IN, session)
            return SignUpResult(user=session.user, session=session)

        user_data = data.get("user", data)
        try:
            user = AuthUser.model_validate(user_data) if user_data else None
        except ValidationError as e:
            raise AuthError("Malformed user returned by the sign-in service") from e
        return SignUpResult(user=user)

    async def sign_out(self):
        if self._session is not None:
            await self._request(
                "POST", "/logout",
                headers={"Authorization": f"Bearer {self._session.access_token}"},
            )
        self._session = None
        self._emit(AuthChangeEvent.SIGNED_OUT, None)

    async def get_session(self) -> Optional[AuthSession]:
        if self._session is None or not self._session.is_expired():
            return self._session

        # Single refresh attempt; failure ends the session
        try:
            data = await self._request(
                "POST", "/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": self._session.refresh_token},
            )
            self._session = self._parse_session(data)
        except AuthError as e:
            logger.warning(f"Session refresh failed, signing out: {e}")
            self._session = None
            self._emit(AuthChangeEvent.SIGNED_OUT, None)
            return None

        self._emit(AuthChangeEvent.TOKEN_REFRESHED, self._session)
        return self._session

    async def aclose(self):
        await super().aclose()
        await self.client.aclose()


class MockAuthGateway(AuthGateway):
    """
    In-memory auth for local development and tests.
    Sign ups are confirmed immediately unless ``auto_confirm`` is off.
    """

    MIN_PASSWORD_LENGTH = 6

    def __init__(self, auto_confirm: bool = True):
        super().__init__()
        self.auto_confirm = auto_confirm
        self._users: dict[str, tuple[str, AuthUser]] = {}

    def register(self, email: str, password: str) -> AuthUser:
        """Seed an existing account."""
        user = AuthUser(id=str(uuid.uuid4()), email=email.lower())
        self._users[email.lower()] = (password, user)
        return user

    def _new_session(self, user: AuthUser) -> AuthSession:
        return AuthSession(
            access_token=f"mock-{uuid.uuid4().hex}",
            refresh_token=uuid.uuid4().hex,
            expires_at=int(time.time()) + 3600,
            user=user,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        record = self._users.get(email.lower())
        if record is None or record[0] != password:
            raise AuthError("Invalid login credentials")
        session = self._new_session(record[1])
        self._session = session
        self._emit(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, redirect_to: str) -> SignUpResult:
        if "@" not in email:
            raise AuthError("Unable to validate email address: invalid format")
        if len(password) < self.MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {self.MIN_PASSWORD_LENGTH} characters.")
        if email.lower() in self._users:
            raise AuthError("User already registered")

        user = self.register(email, password)
        logger.info(f"Mock sign up for {user.email} (redirect {redirect_to})")
        if not self.auto_confirm:
            return SignUpResult(user=user)

        session = self._new_session(user)
        self._session = session
        self._emit(AuthChangeEvent.SIGNED_IN, session)
        return SignUpResult(user=user, session=session)

    async def sign_out(self):
        self._session = None
        self._emit(AuthChangeEvent.SIGNED_OUT, None)

    async def get_session(self) -> Optional[AuthSession]:
        return self._session

    def expire_session(self):
        """Simulate the platform ending the session."""
        self._session = None
        self._emit(AuthChangeEvent.SIGNED_OUT, None)


def create_auth_gateway() -> AuthGateway:
    """Create an auth gateway for one client, based on settings."""
    if settings.auth_provider == "supabase":
        config = get_supabase_config()
        return SupabaseAuthGateway(
            config["auth_url"],
            config["anon_key"],
            timeout=config["timeout"],
        )
    return MockAuthGateway()
