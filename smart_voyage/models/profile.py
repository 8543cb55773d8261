"""
Traveler Profile - personal metadata entered once per user.
Stored with the same camelCase keys the web client has always used.
"""
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Any, Mapping, Union
from datetime import date
from enum import Enum

from ..exceptions import ProfileValidationError


class Gender(str, Enum):
    """Gender options offered by the profile form."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class Language(str, Enum):
    """Preferred language options."""
    ENGLISH = "english"
    HINDI = "hindi"
    ODIA = "odia"
    TAMIL = "tamil"
    TELUGU = "telugu"
    BENGALI = "bengali"
    GUJARATI = "gujarati"
    MARATHI = "marathi"
    KANNADA = "kannada"
    MALAYALAM = "malayalam"


class Profile(BaseModel):
    """
    A user's profile. Every field is mandatory; a profile is never
    created with defaults.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Full name")
    date_of_birth: date = Field(..., alias="dob", description="Date of birth")
    gender: Gender = Field(..., description="Gender")
    nationality: str = Field(..., min_length=1, description="Nationality")
    preferred_language: Language = Field(
        ..., alias="preferredLanguage",
        description="Preferred language"
    )

    def to_storage(self) -> dict:
        """Serialize using the stored (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True)


# Inline messages shown under each field of the profile form
PROFILE_FIELD_MESSAGES = {
    "name": "Name is required",
    "date_of_birth": "Date of birth is required",
    "gender": "Gender is required",
    "nationality": "Nationality is required",
    "preferred_language": "Preferred language is required",
}

_FIELD_BY_ALIAS = {
    (info.alias or name): name for name, info in Profile.model_fields.items()
}

_BLANK_ERROR_TYPES = {"missing", "string_too_short"}


def parse_profile(data: Union[Profile, Mapping[str, Any]]) -> Profile:
    """
    Validate profile form data.

    Raises:
        ProfileValidationError: with one inline message per bad field
    """
    if isinstance(data, Profile):
        return data

    # Empty strings from untouched form controls count as missing
    cleaned = {
        k: v for k, v in data.items()
        if not (isinstance(v, str) and not v.strip())
    }

    try:
        return Profile.model_validate(cleaned)
    except ValidationError as exc:
        field_errors = {}
        for error in exc.errors():
            loc = str(error["loc"][0]) if error["loc"] else "profile"
            field = _FIELD_BY_ALIAS.get(loc, loc)
            if error["type"] in _BLANK_ERROR_TYPES and field in PROFILE_FIELD_MESSAGES:
                field_errors[field] = PROFILE_FIELD_MESSAGES[field]
            else:
                field_errors.setdefault(field, error["msg"])
        raise ProfileValidationError(field_errors) from exc
