"""Tests for the session/navigation controller."""
import json
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from smart_voyage.exceptions import (
    AuthError, GenerationError, JourneyValidationError, NotAuthenticatedError, ProfileValidationError
)
from smart_voyage.models.journey import JourneyType, TripRequest
from smart_voyage.models.page import ItineraryPageData, NewJourneyPageData, Page
from smart_voyage.models.profile import Profile
from smart_voyage.models.session import AppStatus, AuthChangeEvent, ModalKind
from smart_voyage.services.session_controller import ControllerRegistry

from .conftest import PROFILE_DATA, TRIP_DATA

EMAIL = "ravi@example.com"
PASSWORD = "secret123"


@pytest.fixture
def user(auth):
    return auth.register(EMAIL, PASSWORD)


async def sign_in(controller, user, with_profile: bool = True):
    """Start the controller and log in the registered user."""
    await controller.start()
    if with_profile:
        controller.profiles.put(user.id, Profile.model_validate(PROFILE_DATA))
    await controller.login(EMAIL, PASSWORD)
    controller.notifications.drain_toasts()


class TestStartup:
    """Test the initial session lookup."""

    @pytest.mark.asyncio
    async def test_start_anonymous(self, controller):
        state = await controller.start()

        assert state.status == AppStatus.ANONYMOUS
        assert state.current_page == Page.HOME
        assert state.profile_incomplete is False
        assert state.display_name == "Traveler"
        assert state.initials == "U"

    @pytest.mark.asyncio
    async def test_start_with_existing_session(self, controller, auth, user):
        """An existing session lands on the dashboard."""
        await auth.sign_in_with_password(EMAIL, PASSWORD)

        state = await controller.start()

        assert state.status == AppStatus.AUTHENTICATED
        assert state.user.id == user.id
        assert state.current_page == Page.DASHBOARD
        assert state.profile_incomplete is True

    @pytest.mark.asyncio
    async def test_start_survives_lookup_failure(self, controller, auth):
        auth.get_session = AsyncMock(side_effect=AuthError("offline"))

        state = await controller.start()

        assert state.status == AppStatus.ANONYMOUS

    @pytest.mark.asyncio
    async def test_session_event_without_profile(self, controller, auth, user):
        """A sign in from elsewhere loads state and prompts for the missing profile."""
        await controller.start()

        await auth.sign_in_with_password(EMAIL, PASSWORD)

        assert controller.is_authenticated
        assert controller.current_page == Page.DASHBOARD
        assert controller.profile_incomplete is True

    @pytest.mark.asyncio
    async def test_token_refresh_keeps_page(self, controller, auth, user):
        await sign_in(controller, user)
        controller.navigate(Page.FAQ)

        refreshed = auth._session.model_copy(update={"access_token": "refreshed"})
        auth._emit(AuthChangeEvent.TOKEN_REFRESHED, refreshed)

        assert controller.current_page == Page.FAQ
        assert controller.session.access_token == "refreshed"


class TestAuthentication:
    """Test login, sign up and logout."""

    @pytest.mark.asyncio
    async def test_login_with_profile(self, controller, profiles, user):
        await controller.start()
        profiles.put(user.id, Profile.model_validate(PROFILE_DATA))

        await controller.login(EMAIL, PASSWORD)
        state = controller.snapshot()

        assert state.current_page == Page.DASHBOARD
        assert state.profile.name == "Ravi Kumar"
        assert state.profile_incomplete is False
        assert state.display_name == "Ravi Kumar"
        assert state.initials == "RK"
        assert [t.title for t in state.toasts] == ["Welcome back!"]

    @pytest.mark.asyncio
    async def test_login_again_returns_to_dashboard(self, controller, user):
        """A fresh sign in for the same user lands on the dashboard."""
        await sign_in(controller, user)
        controller.navigate(Page.FAQ)

        await controller.login(EMAIL, PASSWORD)

        assert controller.current_page == Page.DASHBOARD

    @pytest.mark.asyncio
    async def test_bad_login_shows_modal(self, controller, user):
        await controller.start()

        with pytest.raises(AuthError):
            await controller.login(EMAIL, "wrong-password")

        assert controller.notifications.modal.title == "Login Failed"
        assert controller.notifications.modal.message == "Invalid login credentials"
        assert controller.notifications.modal.kind == ModalKind.ERROR
        assert controller.status == AppStatus.ANONYMOUS

    @pytest.mark.asyncio
    async def test_signup_prompts_for_profile(self, controller):
        await controller.start()

        await controller.signup("new@example.com", PASSWORD)
        state = controller.snapshot()

        assert state.status == AppStatus.AUTHENTICATED
        assert state.profile_incomplete is True
        assert state.current_page == Page.DASHBOARD
        assert state.display_name == "new"
        assert state.initials == "NE"
        assert [t.title for t in state.toasts] == ["Account created!"]

    @pytest.mark.asyncio
    async def test_signup_awaiting_confirmation(self, controller, auth):
        """Unconfirmed sign ups stay anonymous until the first login."""
        auth.auto_confirm = False
        await controller.start()

        result = await controller.signup("new@example.com", PASSWORD)

        assert result.session is None
        assert controller.status == AppStatus.ANONYMOUS
        assert controller.profile_incomplete is False

        await controller.login("new@example.com", PASSWORD)
        assert controller.profile_incomplete is True

    @pytest.mark.asyncio
    async def test_signup_failure_shows_modal(self, controller):
        await controller.start()

        with pytest.raises(AuthError):
            await controller.signup("new@example.com", "123")

        assert controller.notifications.modal.title == "Sign Up Failed"
        assert "at least 6 characters" in controller.notifications.modal.message

    @pytest.mark.asyncio
    async def test_logout_from_itinerary(self, controller, user):
        """Logging out from any page returns home with state cleared."""
        await sign_in(controller, user)
        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA), JourneyType.NEW)
        assert controller.current_page == Page.ITINERARY

        assert await controller.logout() is True

        state = controller.snapshot()
        assert state.current_page == Page.HOME
        assert state.status == AppStatus.ANONYMOUS
        assert state.profile is None
        assert state.profile_incomplete is False
        assert "Signed out" in [t.title for t in state.toasts]

    @pytest.mark.asyncio
    async def test_logout_failure_keeps_session(self, controller, auth, user):
        await sign_in(controller, user)
        auth.sign_out = AsyncMock(side_effect=AuthError("Network unreachable"))

        assert await controller.logout() is False

        assert controller.is_authenticated
        assert controller.notifications.modal.title == "Error"
        assert controller.notifications.modal.message == "Network unreachable"

    @pytest.mark.asyncio
    async def test_expired_session_returns_home(self, controller, auth, user):
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY)

        auth.expire_session()

        assert controller.current_page == Page.HOME
        assert controller.status == AppStatus.ANONYMOUS
        assert controller.profile is None

    @pytest.mark.asyncio
    async def test_expired_session_on_login_page(self, controller, auth, user):
        await sign_in(controller, user)
        controller.navigate(Page.LOGIN, {"mode": "signup"})

        auth.expire_session()

        assert controller.current_page == Page.LOGIN
        assert controller.page.data.mode == "signup"


class TestNavigation:
    """Test page switching and notifications."""

    @pytest.mark.asyncio
    async def test_navigate_with_payload(self, controller):
        await controller.start()

        controller.navigate("itinerary", {"result": "# Plan"})

        assert controller.current_page == Page.ITINERARY
        assert controller.page.data.result == "# Plan"

    @pytest.mark.asyncio
    async def test_invalid_payload_leaves_page(self, controller):
        await controller.start()
        controller.navigate(Page.FAQ)

        with pytest.raises(ValueError):
            controller.navigate(Page.ITINERARY, {})

        assert controller.current_page == Page.FAQ

    def test_close_modal(self, controller):
        controller.notifications.show_modal("Error", "Something broke", ModalKind.ERROR)

        controller.close_modal()

        assert controller.snapshot().modal is None

    def test_toasts_delivered_once(self, controller):
        controller.notifications.toast("Hello")

        assert len(controller.snapshot().toasts) == 1
        assert controller.snapshot().toasts == []


class TestProfile:
    """Test profile creation and editing."""

    @pytest.mark.asyncio
    async def test_save_profile_clears_prompt(self, controller, profiles, user):
        await sign_in(controller, user, with_profile=False)
        assert controller.profile_incomplete is True

        controller.save_profile(PROFILE_DATA)

        assert controller.profile_incomplete is False
        assert profiles.get(user.id).name == "Ravi Kumar"
        assert [t.title for t in controller.snapshot().toasts] == ["Profile saved!"]

    @pytest.mark.asyncio
    async def test_invalid_profile_keeps_prompt(self, controller, user):
        await sign_in(controller, user, with_profile=False)

        with pytest.raises(ProfileValidationError) as exc_info:
            controller.save_profile({**PROFILE_DATA, "nationality": ""})

        assert exc_info.value.field_errors == {"nationality": "Nationality is required"}
        assert controller.profile_incomplete is True

    @pytest.mark.asyncio
    async def test_save_profile_requires_session(self, controller):
        await controller.start()

        with pytest.raises(NotAuthenticatedError):
            controller.save_profile(PROFILE_DATA)

    @pytest.mark.asyncio
    async def test_update_profile(self, controller, profiles, user):
        await sign_in(controller, user)

        controller.update_profile({**PROFILE_DATA, "preferredLanguage": "english"})

        assert profiles.get(user.id).preferred_language.value == "english"
        assert [t.title for t in controller.snapshot().toasts] == ["Profile updated!"]


class TestJourneys:
    """Test itinerary generation and surprise discovery."""

    @pytest.mark.asyncio
    async def test_submit_new_journey(self, controller, history, user):
        """A new journey opens its itinerary and is saved to history."""
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY)

        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA))

        data = controller.page.data
        assert isinstance(data, ItineraryPageData)
        assert data.result.startswith("# Your trip to Jaipur, Rajasthan")
        assert data.form_data["travelers"] == "Ravi Kumar (36), Asha Kumar (34)"

        entries = history.list(user.id)
        assert len(entries) == 1
        assert entries[0].destination == "Jaipur, Rajasthan"
        assert entries[0].itinerary_text == data.result
        assert entries[0].form_data == data.form_data

    @pytest.mark.asyncio
    async def test_submit_requires_session(self, controller):
        await controller.start()

        with pytest.raises(NotAuthenticatedError):
            await controller.submit_journey(TripRequest.model_validate(TRIP_DATA))

    @pytest.mark.asyncio
    async def test_incomplete_form_is_not_sent(self, controller, service, user):
        await sign_in(controller, user)
        service.generate_itinerary = AsyncMock()

        with pytest.raises(JourneyValidationError):
            await controller.submit_journey(TripRequest(destination="Goa"), JourneyType.NEW)

        service.generate_itinerary.assert_not_called()

    @pytest.mark.asyncio
    async def test_generation_failure(self, controller, service, history, user):
        """A failed generation shows the modal and stays on the form."""
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY)
        service.generate_itinerary = AsyncMock(
            side_effect=GenerationError("generate-itinerary", "Service unavailable")
        )

        with pytest.raises(GenerationError):
            await controller.submit_journey(TripRequest.model_validate(TRIP_DATA))

        assert controller.current_page == Page.NEW_JOURNEY
        assert controller.notifications.modal.title == "Error"
        assert controller.notifications.modal.message == "Service unavailable"
        assert history.list(user.id) == []

    @pytest.mark.asyncio
    async def test_late_itinerary_after_sign_out(self, controller, auth, service, user):
        """An itinerary that arrives after the session ended is not opened."""
        await sign_in(controller, user)

        async def expire_then_answer(payload):
            auth.expire_session()
            return "# Late plan"

        service.generate_itinerary = expire_then_answer
        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA), JourneyType.NEW)

        assert controller.current_page == Page.HOME

    @pytest.mark.asyncio
    async def test_surprise_journey(self, controller, user):
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY, {"journey_type": "surprise"})

        await controller.submit_journey(TripRequest.model_validate({**TRIP_DATA, "destination": ""}))

        data = controller.page.data
        assert isinstance(data, NewJourneyPageData)
        assert data.journey_type == JourneyType.SURPRISE
        assert [d.name for d in data.surprise_results] == [
            "Hampi, Karnataka", "Amritsar, Punjab", "Munnar, Kerala"
        ]

    @pytest.mark.asyncio
    async def test_select_surprise_destination(self, controller, history, user):
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY, {"journey_type": "surprise"})
        await controller.submit_journey(TripRequest.model_validate({**TRIP_DATA, "destination": ""}))

        await controller.select_surprise_destination("Munnar, Kerala")

        assert controller.current_page == Page.ITINERARY
        assert controller.page.data.form_data["destination"] == "Munnar, Kerala"
        assert history.list(user.id)[0].destination == "Munnar, Kerala"

    @pytest.mark.asyncio
    async def test_select_without_recommendations(self, controller, user):
        await sign_in(controller, user)

        with pytest.raises(ValueError):
            await controller.select_surprise_destination("Goa")

    @pytest.mark.asyncio
    async def test_no_destinations_found(self, controller, service, user):
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY, {"journey_type": "surprise"})
        service.find_surprise = AsyncMock(return_value="Sorry, nothing matched.")

        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA))

        assert controller.page.data.surprise_results == []
        assert "No destinations found" in [t.title for t in controller.snapshot().toasts]

    @pytest.mark.asyncio
    async def test_late_recommendations_are_dropped(self, controller, service, user):
        """Recommendations arriving after the user left the page do not pull them back."""
        await sign_in(controller, user)
        controller.navigate(Page.NEW_JOURNEY, {"journey_type": "surprise"})

        async def leave_then_answer(payload):
            controller.navigate(Page.DASHBOARD)
            return "## 1. Goa\nBeaches"

        service.find_surprise = leave_then_answer
        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA))

        assert controller.current_page == Page.DASHBOARD


class TestChecklistAndChat:
    """Test the luggage checklist and chatbot calls."""

    @pytest.mark.asyncio
    async def test_checklist_for_open_itinerary(self, controller, user):
        await sign_in(controller, user)
        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA), JourneyType.NEW)

        checklist = await controller.fetch_luggage_checklist()

        assert checklist.weather_summary.startswith("Winter")
        assert checklist.categories.essentials

    @pytest.mark.asyncio
    async def test_checklist_failure_is_silent(self, controller, service):
        service.generate_luggage_checklist = AsyncMock(
            side_effect=GenerationError("generate-luggage-checklist", "boom")
        )

        checklist = await controller.fetch_luggage_checklist({"destination": "Goa"})

        assert checklist is None
        assert controller.notifications.modal is None

    @pytest.mark.asyncio
    async def test_checklist_needs_a_place(self, controller, service):
        service.generate_luggage_checklist = AsyncMock()

        assert await controller.fetch_luggage_checklist() is None
        assert await controller.fetch_luggage_checklist({"date": "2026-01-01"}) is None
        service.generate_luggage_checklist.assert_not_called()

    @pytest.mark.asyncio
    async def test_chat(self, controller):
        reply = await controller.send_chat_message("Best time for Goa?")
        assert "Best time for Goa?" in reply

    @pytest.mark.asyncio
    async def test_chat_failure_shows_modal(self, controller, service):
        service.chat = AsyncMock(side_effect=GenerationError("chatbot", "Assistant is offline"))

        with pytest.raises(GenerationError):
            await controller.send_chat_message("hello")

        assert controller.notifications.modal.message == "Assistant is offline"


class TestHistory:
    """Test viewing and deleting saved journeys."""

    @pytest.mark.asyncio
    async def test_view_and_delete(self, controller, user):
        await sign_in(controller, user)
        await controller.submit_journey(TripRequest.model_validate(TRIP_DATA), JourneyType.NEW)
        entry = controller.journey_history()[0]
        controller.navigate(Page.DASHBOARD)

        controller.view_journey(entry.id)

        assert controller.current_page == Page.ITINERARY
        assert controller.page.data.result == entry.itinerary_text
        assert controller.page.data.form_data == entry.form_data

        assert controller.delete_journey(entry.id) == []
        assert controller.view_journey(entry.id) is None

    @pytest.mark.asyncio
    async def test_view_blank_stored_itinerary(self, controller, storage, user):
        """A stored entry without itinerary text cannot be opened."""
        await sign_in(controller, user)
        storage.set_item(
            f"journey_history_{user.id}",
            json.dumps([{"id": "j1", "itinerary": "", "createdAt": "2026-01-01T00:00:00Z"}])
        )

        assert controller.view_journey("j1") is None
        assert controller.current_page == Page.DASHBOARD

    @pytest.mark.asyncio
    async def test_history_requires_session(self, controller):
        await controller.start()

        with pytest.raises(NotAuthenticatedError):
            controller.journey_history()


class TestShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_stops_listening(self, controller, auth, user):
        await controller.start()

        await controller.shutdown()
        await auth.sign_in_with_password(EMAIL, PASSWORD)

        assert controller.status == AppStatus.ANONYMOUS
        assert auth._listeners == []


class TestControllerRegistry:
    """Test the per-client controller registry."""

    @pytest.mark.asyncio
    async def test_idle_clients_are_closed(self):
        registry = ControllerRegistry(idle_timeout=timedelta(minutes=30))
        idle_id, idle = await registry.create()
        active_id, _ = await registry.create()
        registry._last_seen[idle_id] = datetime.now() - timedelta(hours=2)

        expired = await registry.prune_idle()

        assert expired == [idle_id]
        assert registry.get(idle_id) is None
        assert registry.get(active_id) is not None
        assert idle.auth._listeners == []
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_lookup_keeps_client_alive(self):
        registry = ControllerRegistry(idle_timeout=timedelta(minutes=30))
        client_id, _ = await registry.create()
        later = datetime.now() + timedelta(minutes=20)

        registry.get(client_id)

        assert await registry.prune_idle(now=later) == []
        assert await registry.prune_idle(now=later + timedelta(hours=1)) == [client_id]

    @pytest.mark.asyncio
    async def test_no_timeout_keeps_everything(self):
        registry = ControllerRegistry()
        client_id, _ = await registry.create()

        assert await registry.prune_idle(now=datetime.now() + timedelta(days=7)) == []
        assert registry.get(client_id) is not None
        await registry.close_all()
