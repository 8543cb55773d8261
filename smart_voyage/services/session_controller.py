"""
Session Controller - client application state machine.
Owns the session, the profile, the active page and notifications.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel

from .auth_gateway import AuthGateway, Subscription, create_auth_gateway
from .destination_parser import parse_destinations
from .history_store import JourneyHistoryStore
from .itinerary_service import ItineraryService, create_itinerary_service
from .notifications import NotificationCenter
from .profile_store import ProfileStore
from .storage import get_storage
from ..config import settings, get_supabase_config
from ..exceptions import AuthError, GenerationError, NotAuthenticatedError
from ..models.history import JourneyHistoryEntry
from ..models.journey import JourneyType, TripRequest
from ..models.page import Page, PageState, NewJourneyPageData, build_page_data
from ..models.profile import Profile, parse_profile
from ..models.recommendation import LuggageChecklist, checklist_request
from ..models.session import (
    AppStatus, AuthChangeEvent, AuthSession, ClientState, ModalKind
)

logger = logging.getLogger(__name__)


class SessionController:
    """
    Controls one client's application state.

    The controller (this class) is the only place that changes:
    - the authenticated session and the loaded profile
    - the current page and its payload
    - the modal and toast notifications

    Page views read ``snapshot()`` and send intents back through the
    public methods. Every operation runs on one event loop, so state
    changes happen strictly in the order events arrive.
    """

    def __init__(
        self,
        auth: AuthGateway,
        service: ItineraryService,
        profiles: ProfileStore,
        history: JourneyHistoryStore,
        notifications: Optional[NotificationCenter] = None,
        redirect_to: str = "/"
    ):
        self.auth = auth
        self.service = service
        self.profiles = profiles
        self.history = history
        self.notifications = notifications or NotificationCenter()
        self.redirect_to = redirect_to

        self.status = AppStatus.LOADING
        self.session: Optional[AuthSession] = None
        self.profile: Optional[Profile] = None
        self.page = PageState()
        self._profile_prompt = False
        self._subscription: Optional[Subscription] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user.id if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def profile_incomplete(self) -> bool:
        """True while the mandatory profile-creation prompt must be shown."""
        return self.is_authenticated and self._profile_prompt and self.profile is None

    @property
    def current_page(self) -> Page:
        return self.page.current_page

    def snapshot(self, drain_toasts: bool = True) -> ClientState:
        """Render state for the views."""
        toasts = (
            self.notifications.drain_toasts() if drain_toasts
            else self.notifications.pending_toasts
        )
        return ClientState(
            status=self.status,
            user=self.session.user if self.session else None,
            profile=self.profile,
            profile_incomplete=self.profile_incomplete,
            display_name=self.display_name(),
            initials=self.initials(),
            current_page=self.current_page,
            page_data=self.page.data,
            modal=self.notifications.modal,
            toasts=toasts,
        )

    def display_name(self) -> str:
        if self.profile and self.profile.name:
            return self.profile.name
        if self.session and self.session.user.email:
            return self.session.user.email.split("@")[0]
        return "Traveler"

    def initials(self) -> str:
        if self.profile and self.profile.name:
            names = self.profile.name.split()
            if len(names) >= 2:
                return f"{names[0][0]}{names[-1][0]}".upper()
            return self.profile.name[:2].upper()
        if self.session and self.session.user.email:
            return self.session.user.email[:2].upper()
        return "U"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ClientState:
        """Subscribe to session changes and look up any existing session once."""
        self.status = AppStatus.LOADING
        if self._subscription is None:
            self._subscription = self.auth.on_session_change(self._on_session_change)

        try:
            session = await self.auth.get_session()
        except AuthError as e:
            logger.warning(f"Initial session lookup failed: {e}")
            session = None

        if session is not None:
            self._enter_session(session)
        else:
            self.status = AppStatus.ANONYMOUS
        return self.snapshot(drain_toasts=False)

    async def shutdown(self):
        """Stop listening for session changes and release collaborators."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self.auth.aclose()
        await self.service.aclose()

    def _on_session_change(self, event: AuthChangeEvent, session: Optional[AuthSession]):
        logger.info(f"Session change: {event.value}")
        if session is not None:
            self._enter_session(session, event)
        else:
            self._leave_session()
            if self.current_page not in (Page.HOME, Page.LOGIN):
                self._set_page(Page.HOME)

    def _enter_session(
        self,
        session: AuthSession,
        event: AuthChangeEvent = AuthChangeEvent.SIGNED_IN
    ):
        previous_user = self.user_id
        self.session = session
        self.status = AppStatus.AUTHENTICATED
        self._load_profile()
        # Only a token refresh for the same user keeps the current page
        if event != AuthChangeEvent.TOKEN_REFRESHED or previous_user != session.user.id:
            self._set_page(Page.DASHBOARD)

    def _leave_session(self):
        self.session = None
        self.profile = None
        self._profile_prompt = False
        self.status = AppStatus.ANONYMOUS

    def _load_profile(self):
        self.profile = self.profiles.get(self.session.user.id)
        if self.profile is None:
            self._profile_prompt = True

    def _require_user(self) -> str:
        if self.session is None:
            raise NotAuthenticatedError()
        return self.session.user.id

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Raises:
            AuthError: after showing the failure modal, so the form stays open
        """
        try:
            session = await self.auth.sign_in_with_password(email, password)
        except AuthError as e:
            self.notifications.show_modal(
                "Login Failed", str(e) or "Invalid email or password", ModalKind.ERROR
            )
            raise

        self._enter_session(session)
        self.notifications.toast("Welcome back!", "You've successfully signed in.")
        return session

    async def signup(self, email: str, password: str):
        """
        Create an account. New users always get the profile prompt.

        Raises:
            AuthError: after showing the failure modal
        """
        try:
            result = await self.auth.sign_up(email, password, self.redirect_to)
        except AuthError as e:
            self.notifications.show_modal(
                "Sign Up Failed", str(e) or "Could not create account", ModalKind.ERROR
            )
            raise

        if result.session is not None:
            self._enter_session(result.session)
        if result.user is not None:
            self._profile_prompt = True
        self.notifications.toast("Account created!", "Welcome to Smart Voyage!")
        return result

    async def logout(self) -> bool:
        """Sign out. On failure the modal is shown and the session is kept."""
        try:
            await self.auth.sign_out()
        except AuthError as e:
            self.notifications.show_modal("Error", str(e) or "Could not sign out", ModalKind.ERROR)
            return False

        self._leave_session()
        self._set_page(Page.HOME)
        self.notifications.toast("Signed out", "You've been successfully signed out.")
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(
        self,
        page: Union[Page, str],
        data: Union[BaseModel, Mapping[str, Any], None] = None
    ) -> PageState:
        """
        Switch page.

        Raises:
            ValueError: unknown page or a payload the page cannot render;
                the current page is left as it was
        """
        self.page = PageState(data=build_page_data(page, data))
        logger.debug(f"Navigated to {self.current_page.value}")
        return self.page

    def _set_page(self, page: Page):
        self.page = PageState(data=build_page_data(page))

    def close_modal(self):
        self.notifications.close_modal()

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def save_profile(self, data: Union[Profile, Mapping[str, Any]]) -> Profile:
        """
        Save the first profile for the signed-in user.

        Raises:
            NotAuthenticatedError: nobody is signed in
            ProfileValidationError: with inline field messages
        """
        profile = self._store_profile(data)
        self.notifications.toast("Profile saved!", "Your profile has been created successfully.")
        return profile

    def update_profile(self, data: Union[Profile, Mapping[str, Any]]) -> Profile:
        """Replace the signed-in user's profile."""
        profile = self._store_profile(data)
        self.notifications.toast("Profile updated!", "Your profile has been updated successfully.")
        return profile

    def _store_profile(self, data: Union[Profile, Mapping[str, Any]]) -> Profile:
        user_id = self._require_user()
        profile = parse_profile(data)
        self.profiles.put(user_id, profile)
        self.profile = profile
        self._profile_prompt = False
        return profile

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _generation_failed(self, error: GenerationError, fallback: str):
        self.notifications.show_modal("Error", str(error) or fallback, ModalKind.ERROR)

    async def generate_itinerary(self, request: TripRequest) -> str:
        """
        Generate itinerary text for a trip.

        Raises:
            GenerationError: after showing the error modal; never retried
        """
        try:
            return await self.service.generate_itinerary(request.to_payload())
        except GenerationError as e:
            self._generation_failed(e, "Could not generate itinerary")
            raise

    async def find_surprise(self, request: TripRequest) -> str:
        """Ask for up to three destination recommendations (raw text)."""
        try:
            return await self.service.find_surprise(request.to_payload())
        except GenerationError as e:
            self._generation_failed(e, "Could not find surprise destinations")
            raise

    async def send_chat_message(self, text: str) -> str:
        """Send one chatbot message and return the reply."""
        try:
            return await self.service.chat(text)
        except GenerationError as e:
            self._generation_failed(e, "Could not reach the assistant")
            raise

    async def fetch_luggage_checklist(
        self,
        form_data: Optional[Mapping[str, Any]] = None
    ) -> Optional[LuggageChecklist]:
        """
        Packing checklist for an itinerary's form. Failures are logged and
        give None so the itinerary renders without the checklist section.
        """
        if form_data is None:
            data = self.page.data
            form_data = getattr(data, "form_data", None)
        if not form_data or not (form_data.get("destination") or form_data.get("origin")):
            return None

        try:
            return await self.service.generate_luggage_checklist(checklist_request(form_data))
        except GenerationError as e:
            logger.warning(f"Skipping luggage checklist: {e}")
            return None

    # ------------------------------------------------------------------
    # Journeys
    # ------------------------------------------------------------------

    async def submit_journey(
        self,
        request: TripRequest,
        journey_type: Optional[JourneyType] = None
    ) -> PageState:
        """
        Submit the journey form.

        A "new" journey generates an itinerary, records it in history and
        opens the itinerary page. A "surprise" journey fetches
        recommendations and shows them on the journey page.

        Raises:
            NotAuthenticatedError: nobody is signed in
            JourneyValidationError: the form is incomplete
            GenerationError: the service call failed (modal already shown)
        """
        if journey_type is None:
            data = self.page.data
            journey_type = data.journey_type if isinstance(data, NewJourneyPageData) else JourneyType.NEW

        self._require_user()
        request.validate_for(journey_type)

        if journey_type == JourneyType.NEW:
            return await self._plan_journey(request)
        return await self._discover_destinations(request)

    async def select_surprise_destination(self, name: str) -> PageState:
        """Generate the itinerary for one of the recommended destinations."""
        data = self.page.data
        if not isinstance(data, NewJourneyPageData) or data.request is None:
            raise ValueError("No surprise recommendations to choose from")
        self._require_user()
        return await self._plan_journey(data.request.with_destination(name))

    async def _plan_journey(self, request: TripRequest) -> PageState:
        user_id = self._require_user()
        itinerary = await self.generate_itinerary(request)
        payload = request.to_payload()

        # Showing the result does not depend on the history write
        try:
            self.history.record(user_id, itinerary, payload)
        except OSError as e:
            logger.error(f"Could not save journey to history: {e}")

        if self.user_id != user_id:
            logger.info("Itinerary arrived after the session ended; not opening it")
            return self.page
        return self.navigate(Page.ITINERARY, {"result": itinerary, "form_data": payload})

    async def _discover_destinations(self, request: TripRequest) -> PageState:
        user_id = self._require_user()
        submitted_from = self.page
        text = await self.find_surprise(request)
        destinations = parse_destinations(text)

        if self.user_id != user_id or self.page is not submitted_from:
            logger.info("Recommendations arrived after leaving the journey page; dropping them")
            return self.page

        if not destinations:
            self.notifications.toast(
                "No destinations found",
                "We couldn't find recommendations this time. Try adjusting your preferences."
            )
        return self.navigate(Page.NEW_JOURNEY, NewJourneyPageData(
            journey_type=JourneyType.SURPRISE,
            request=request,
            surprise_results=destinations,
        ))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def journey_history(self) -> List[JourneyHistoryEntry]:
        return self.history.list(self._require_user())

    def view_journey(self, entry_id: str) -> Optional[PageState]:
        """Open a saved itinerary; None if it no longer exists."""
        entry = self.history.get(self._require_user(), entry_id)
        if entry is None:
            return None
        return self.navigate(Page.ITINERARY, {
            "result": entry.itinerary_text,
            "form_data": entry.form_data,
        })

    def delete_journey(self, entry_id: str) -> List[JourneyHistoryEntry]:
        return self.history.remove(self._require_user(), entry_id)


def create_controller() -> SessionController:
    """Build a controller for one client from settings."""
    storage = get_storage()
    auth = create_auth_gateway()
    return SessionController(
        auth=auth,
        service=create_itinerary_service(token_provider=auth.access_token),
        profiles=ProfileStore(storage),
        history=JourneyHistoryStore(storage, limit=settings.history_limit),
        redirect_to=get_supabase_config()["redirect_to"],
    )


class ControllerRegistry:
    """
    In-memory registry of one controller per connected client.
    Clients left idle longer than ``idle_timeout`` are shut down the next
    time a client is created.
    """

    def __init__(self, idle_timeout: Optional[timedelta] = None):
        self.idle_timeout = idle_timeout
        self._controllers: dict[str, SessionController] = {}
        self._last_seen: dict[str, datetime] = {}

    async def create(self) -> tuple[str, SessionController]:
        await self.prune_idle()
        client_id = str(uuid.uuid4())
        controller = create_controller()
        await controller.start()
        self._controllers[client_id] = controller
        self._last_seen[client_id] = datetime.now()
        return client_id, controller

    def get(self, client_id: str) -> Optional[SessionController]:
        controller = self._controllers.get(client_id)
        if controller is not None:
            self._last_seen[client_id] = datetime.now()
        return controller

    async def delete(self, client_id: str):
        self._last_seen.pop(client_id, None)
        controller = self._controllers.pop(client_id, None)
        if controller is not None:
            await controller.shutdown()

    async def prune_idle(self, now: Optional[datetime] = None) -> list[str]:
        """Shut down clients idle past the timeout; returns their ids."""
        if not self.idle_timeout:
            return []
        cutoff = (now or datetime.now()) - self.idle_timeout
        expired = [cid for cid, seen in self._last_seen.items() if seen < cutoff]
        for client_id in expired:
            logger.info(f"Closing idle client {client_id}")
            await self.delete(client_id)
        return expired

    async def close_all(self):
        for client_id in list(self._controllers):
            await self.delete(client_id)


# Global controller registry
controller_registry = ControllerRegistry(
    idle_timeout=timedelta(minutes=settings.client_idle_minutes) if settings.client_idle_minutes > 0 else None
)
