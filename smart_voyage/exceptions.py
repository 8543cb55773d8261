"""Error taxonomy for Smart Voyage."""


class SmartVoyageError(Exception):
    """Base class for application errors."""


class AuthError(SmartVoyageError):
    """Sign in, sign up or sign out failed."""


class NotAuthenticatedError(AuthError):
    """Operation requires a signed-in user."""

    def __init__(self, message: str = "You need to be signed in to do that."):
        super().__init__(message)


class GenerationError(SmartVoyageError):
    """Itinerary/recommendation service call failed."""

    def __init__(self, function: str, message: str):
        self.function = function
        super().__init__(message)


class StorageParseError(SmartVoyageError):
    """Stored local data could not be decoded."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"[{key}] {message}")


class FormValidationError(SmartVoyageError):
    """A form failed validation; carries one message per field."""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = field_errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in field_errors.items()))


class ProfileValidationError(FormValidationError):
    """Profile creation/edit form is incomplete."""


class JourneyValidationError(FormValidationError):
    """Journey form is incomplete."""
