# studio_bookings/core/exceptions.py
"""
Domain errors raised by the reconciler, waitlist and signup services.

Endpoints translate these into HTTP responses; services never raise
HTTPException themselves.
"""


class BookingError(Exception):
    """Base class for all booking domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidEventError(BookingError):
    """A webhook event is well-formed JSON but cannot be acted upon."""

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        self.missing_fields = missing_fields or []
        super().__init__(message)


class ClaimRejectedError(BookingError):
    """
    A waitlist claim cannot be honoured.

    `reason` is either "invalid" (unknown signup or token mismatch) or
    "expired" (the offer window has passed), so the claim page can tell
    the two apart.
    """

    INVALID = "invalid"
    EXPIRED = "expired"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class SignupNotFoundError(BookingError):
    pass


class CourseNotFoundError(BookingError):
    pass


class SignupActionError(BookingError):
    """A teacher action is not allowed in the signup's current state."""


class RefundFailedError(BookingError):
    """The payment provider refused or failed to create a refund."""


class WebhookSignatureError(BookingError):
    """The webhook payload could not be verified against its signature."""


class CourseActionError(BookingError):
    """A course-level action is not allowed in the course's current state."""
