"""
Error kinds reported by the reservation core.

Every error carries a stable ``code`` and a ``details`` dict so the HTTP
collaborator can render it without parsing messages. None of these are
fatal to the process; ConflictError is normally returned inside a Result
rather than raised.
"""

from typing import Any, Optional


class ReservationError(Exception):
    """Base class for all errors surfaced by the core."""

    code = "reservation_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ConflictError(ReservationError):
    """The interval is already held or booked. Pick another slot."""

    code = "conflict"


class TokenExpiredError(ReservationError):
    """The hold is gone or past its expiry. Acquire a new hold."""

    code = "hold_expired"


HoldExpiredError = TokenExpiredError


class TokenMismatchError(ReservationError):
    """The hold exists but was issued for a different slot."""

    code = "hold_mismatch"


class OutsideBusinessHoursError(ReservationError):
    """The interval falls outside the resolved business or working hours."""

    code = "outside_business_hours"


class ResourceInactiveError(ReservationError):
    code = "resource_inactive"


class NotFoundError(ReservationError):
    code = "not_found"


class InvalidStatusTransitionError(ReservationError):
    """A lease or booking was asked to leave a state it cannot leave."""

    code = "invalid_status_transition"


class InvalidIntervalError(ReservationError, ValueError):
    code = "invalid_interval"


class UnavailableError(ReservationError):
    """Backing store I/O failed. Callers must treat this as a denial."""

    code = "unavailable"
