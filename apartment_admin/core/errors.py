"""
Domain errors raised by services and rendered by the API layer.

Every error carries the HTTP status it maps to, so routers never translate
exceptions by hand; the handlers registered in ``main.create_app`` do it.
"""
from typing import Any, Optional


class BookingAdminError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        return {"message": self.message, **self.details}


class ValidationError(BookingAdminError):
    """Malformed input: non-chronological dates, days < 1, bad field values."""

    status_code = 400


class InvalidSeasonError(ValidationError):
    """Season name has no multiplier in the pricing rule."""


class NotFoundError(BookingAdminError):
    status_code = 404


class PermissionDeniedError(BookingAdminError):
    status_code = 403


class AuthenticationError(BookingAdminError):
    status_code = 401


class ConflictError(BookingAdminError):
    """Requested stay overlaps existing non-cancelled bookings."""

    status_code = 409

    def __init__(self, message: str, conflicts: Optional[list] = None):
        super().__init__(message)
        self.conflicts = conflicts or []

    def to_payload(self) -> dict:
        return {"message": self.message, "conflicts": self.conflicts}


class NoPricingRuleError(BookingAdminError):
    """No pricing rule is effective yet: missing setup data, not bad input."""

    status_code = 500


class NotificationError(BookingAdminError):
    status_code = 502


class StorageError(BookingAdminError):
    """Store unreachable or busy. Safe for the caller to retry."""

    status_code = 503
