"""Terminal outcomes of the contact pipeline.

Each error carries the HTTP status and the client-safe message returned as
``{"success": false, "message": ...}``. Internal causes are logged, never sent.
"""

from __future__ import annotations


class ContactError(RuntimeError):
    """Base class for pipeline stages that end the request early."""

    status_code: int = 200
    default_message: str = "Unable to process your request."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MethodNotAllowed(ContactError):
    status_code = 405
    default_message = "Method not allowed"


class OriginRejected(ContactError):
    status_code = 403
    default_message = "Invalid request source"


class RateLimited(ContactError):
    status_code = 429
    default_message = "Too many submission attempts. Please try again later."


class ValidationFailed(ContactError):
    """Submitted fields failed a presence or format check."""


class MissingFields(ValidationFailed):
    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__("Please fill all required fields: " + ", ".join(self.fields))


class InvalidEmail(ValidationFailed):
    default_message = "Please enter a valid email address"


class InvalidPhone(ValidationFailed):
    default_message = "Please enter a valid phone number"


class TotalFailure(ContactError):
    """Neither persistence nor the clinic notification succeeded."""

    default_message = (
        "Sorry, there was an error processing your request. "
        "Please try calling us directly."
    )
