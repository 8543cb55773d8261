"""
API Routes for Smart Voyage.
Each client drives its own SessionController; every response carries the
state the page views render.
"""
from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError
from typing import Any, Literal, Optional

from ..exceptions import (
    AuthError, FormValidationError, GenerationError, NotAuthenticatedError, SmartVoyageError
)
from ..models.history import JourneyHistoryEntry
from ..models.journey import JourneyType, TripRequest
from ..models.page import ItineraryPageData, Page
from ..models.recommendation import LuggageChecklist
from ..models.session import ClientState
from ..services.session_controller import SessionController, controller_registry


router = APIRouter(prefix="/api", tags=["smart-voyage"])

DOWNLOAD_FILENAME = "smart-voyage-itinerary.md"


# Request/Response Models
class ClientRequest(BaseModel):
    client_id: str


class StateResponse(BaseModel):
    client_id: str
    state: ClientState


class CredentialsRequest(ClientRequest):
    email: str
    password: str


class NavigateRequest(ClientRequest):
    page: Page
    data: Optional[dict[str, Any]] = None


class ProfileRequest(ClientRequest):
    profile: dict[str, Any]


class JourneyRequest(ClientRequest):
    journey_type: Optional[JourneyType] = None
    trip: dict[str, Any]


class SelectDestinationRequest(ClientRequest):
    destination: str


class ViewJourneyRequest(ClientRequest):
    entry_id: str


class ChecklistRequest(ClientRequest):
    form_data: Optional[dict[str, Any]] = None


class ChecklistResponse(BaseModel):
    checklist: Optional[LuggageChecklist] = None


class ChatRequest(ClientRequest):
    message: str


class ChatResponse(BaseModel):
    reply: str


class HistoryResponse(BaseModel):
    journeys: list[JourneyHistoryEntry]


def _get_controller(client_id: str) -> SessionController:
    controller = controller_registry.get(client_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return controller


def _http_error(e: SmartVoyageError) -> HTTPException:
    """Translate application errors; modals were already raised by the controller."""
    if isinstance(e, NotAuthenticatedError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, AuthError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, FormValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": "Please fix the highlighted fields", "field_errors": e.field_errors}
        )
    if isinstance(e, GenerationError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _state(client_id: str, controller: SessionController) -> StateResponse:
    return StateResponse(client_id=client_id, state=controller.snapshot())


# Endpoints

@router.post("/client", response_model=StateResponse)
async def create_client():
    """Start a new client: subscribe to auth and look up any session."""
    client_id, controller = await controller_registry.create()
    return _state(client_id, controller)


@router.delete("/client/{client_id}")
async def close_client(client_id: str):
    """Stop a client and release its resources."""
    _get_controller(client_id)
    await controller_registry.delete(client_id)
    return {"success": True}


@router.get("/state/{client_id}", response_model=StateResponse)
async def get_state(client_id: str):
    """Current view state (pending toasts are delivered once)."""
    return _state(client_id, _get_controller(client_id))


@router.post("/auth/login", response_model=StateResponse)
async def login(request: CredentialsRequest):
    controller = _get_controller(request.client_id)
    try:
        await controller.login(request.email, request.password)
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.post("/auth/signup", response_model=StateResponse)
async def signup(request: CredentialsRequest):
    controller = _get_controller(request.client_id)
    try:
        await controller.signup(request.email, request.password)
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.post("/auth/logout", response_model=StateResponse)
async def logout(request: ClientRequest):
    """Sign out. A failure is reported through the state's modal."""
    controller = _get_controller(request.client_id)
    await controller.logout()
    return _state(request.client_id, controller)


@router.post("/navigate", response_model=StateResponse)
async def navigate(request: NavigateRequest):
    controller = _get_controller(request.client_id)
    try:
        controller.navigate(request.page, request.data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return _state(request.client_id, controller)


@router.post("/modal/close", response_model=StateResponse)
async def close_modal(request: ClientRequest):
    controller = _get_controller(request.client_id)
    controller.close_modal()
    return _state(request.client_id, controller)


@router.post("/profile", response_model=StateResponse)
async def create_profile(request: ProfileRequest):
    """Save the mandatory first profile."""
    controller = _get_controller(request.client_id)
    try:
        controller.save_profile(request.profile)
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.put("/profile", response_model=StateResponse)
async def update_profile(request: ProfileRequest):
    controller = _get_controller(request.client_id)
    try:
        controller.update_profile(request.profile)
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.post("/journeys", response_model=StateResponse)
async def submit_journey(request: JourneyRequest):
    """Submit the journey form (new itinerary or surprise search)."""
    controller = _get_controller(request.client_id)
    try:
        trip = TripRequest.model_validate(request.trip)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    try:
        await controller.submit_journey(trip, request.journey_type)
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.post("/journeys/surprise/select", response_model=StateResponse)
async def select_surprise_destination(request: SelectDestinationRequest):
    controller = _get_controller(request.client_id)
    try:
        await controller.select_surprise_destination(request.destination)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SmartVoyageError as e:
        raise _http_error(e)
    return _state(request.client_id, controller)


@router.get("/history/{client_id}", response_model=HistoryResponse)
async def get_history(client_id: str):
    """Saved journeys, newest first."""
    controller = _get_controller(client_id)
    try:
        return HistoryResponse(journeys=controller.journey_history())
    except SmartVoyageError as e:
        raise _http_error(e)


@router.post("/history/view", response_model=StateResponse)
async def view_journey(request: ViewJourneyRequest):
    controller = _get_controller(request.client_id)
    try:
        page = controller.view_journey(request.entry_id)
    except SmartVoyageError as e:
        raise _http_error(e)
    if page is None:
        raise HTTPException(status_code=404, detail="Journey not found")
    return _state(request.client_id, controller)


@router.delete("/history/{client_id}/{entry_id}", response_model=HistoryResponse)
async def delete_journey(client_id: str, entry_id: str):
    controller = _get_controller(client_id)
    try:
        return HistoryResponse(journeys=controller.delete_journey(entry_id))
    except SmartVoyageError as e:
        raise _http_error(e)


@router.post("/checklist", response_model=ChecklistResponse)
async def luggage_checklist(request: ChecklistRequest):
    """Weather-aware packing list; empty when it could not be generated."""
    controller = _get_controller(request.client_id)
    checklist = await controller.fetch_luggage_checklist(request.form_data)
    return ChecklistResponse(checklist=checklist)


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    controller = _get_controller(request.client_id)
    try:
        reply = await controller.send_chat_message(request.message)
    except SmartVoyageError as e:
        raise _http_error(e)
    return ChatResponse(reply=reply)


@router.get("/itinerary/{client_id}/download")
async def download_itinerary(client_id: str):
    """The open itinerary as a markdown attachment."""
    controller = _get_controller(client_id)
    data = controller.page.data
    if not isinstance(data, ItineraryPageData):
        raise HTTPException(status_code=404, detail="No itinerary is open")
    return Response(
        content=data.result,
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'},
    )
