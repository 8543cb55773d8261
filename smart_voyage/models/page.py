"""
Page State - which view is active and the payload it was given.
Each page declares exactly the fields it needs (tagged by ``page``).
"""
from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Any, Literal, Mapping, Optional, Union
from enum import Enum

from .journey import JourneyType, TripRequest
from .recommendation import SurpriseDestination


class Page(str, Enum):
    """Logical pages of the application."""
    HOME = "home"
    LOGIN = "login"
    DASHBOARD = "dashboard"
    NEW_JOURNEY = "new-journey"
    ITINERARY = "itinerary"
    FAQ = "faq"


class HomePageData(BaseModel):
    page: Literal["home"] = "home"


class LoginPageData(BaseModel):
    page: Literal["login"] = "login"
    mode: Literal["login", "signup"] = "login"


class DashboardPageData(BaseModel):
    page: Literal["dashboard"] = "dashboard"


class NewJourneyPageData(BaseModel):
    page: Literal["new-journey"] = "new-journey"
    journey_type: JourneyType = JourneyType.NEW
    # Filled once a surprise search has returned
    request: Optional[TripRequest] = None
    surprise_results: list[SurpriseDestination] = Field(default_factory=list)


class ItineraryPageData(BaseModel):
    page: Literal["itinerary"] = "itinerary"
    result: str = Field(..., min_length=1, description="Generated itinerary (markdown)")
    form_data: Optional[dict[str, Any]] = Field(
        None,
        description="Snapshot of the form the itinerary was generated from"
    )


class FaqPageData(BaseModel):
    page: Literal["faq"] = "faq"


PageData = Annotated[
    Union[
        HomePageData,
        LoginPageData,
        DashboardPageData,
        NewJourneyPageData,
        ItineraryPageData,
        FaqPageData,
    ],
    Field(discriminator="page"),
]

_page_data_adapter = TypeAdapter(PageData)


def build_page_data(
    page: Union[Page, str],
    data: Union[BaseModel, Mapping[str, Any], None] = None
) -> PageData:
    """
    Build the payload variant for a page.

    Raises:
        ValueError: unknown page, or payload missing what the page requires
            (pydantic.ValidationError is a ValueError)
    """
    if isinstance(data, BaseModel):
        payload = data.model_dump()
    else:
        payload = dict(data or {})
    payload["page"] = Page(page).value
    return _page_data_adapter.validate_python(payload)


class PageState(BaseModel):
    """The single live page record."""
    data: PageData = Field(default_factory=HomePageData)

    @property
    def current_page(self) -> Page:
        return Page(self.data.page)
