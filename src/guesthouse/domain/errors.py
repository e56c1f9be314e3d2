"""Reservation error taxonomy.

Every error raised by the engine or a store derives from ReservationError.
``code`` is stable for API clients; ``retryable`` tells callers (and the
engine's own retry loop) whether trying again unchanged can succeed.
"""

from __future__ import annotations


class ReservationError(Exception):
    """Base class for reservation engine errors."""

    code = "reservation_error"
    retryable = False


class ValidationError(ReservationError):
    """Malformed input, rejected before storage is touched."""

    code = "validation_error"


class NotFoundError(ReservationError):
    """Unknown reservation or room identifier."""

    code = "not_found"


class ConflictError(ReservationError):
    """The room is not available for the requested range."""

    code = "dates_unavailable"


class InvalidTransitionError(ReservationError):
    """Status change not allowed from the reservation's current status."""

    code = "invalid_transition"

    def __init__(self, current: str, target: str, reason: str | None = None) -> None:
        self.current = current
        self.target = target
        self.reason = reason
        message = f"Invalid status transition: {current} -> {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ReservationNotPendingError(ReservationError):
    """Members can only be attached while the reservation is pending."""

    code = "reservation_not_pending"

    def __init__(self, reservation_id: str, status: str) -> None:
        self.reservation_id = reservation_id
        self.status = status
        super().__init__(
            f"Reservation {reservation_id} has status '{status}', expected 'pending'"
        )


class PermissionDeniedError(ReservationError):
    """The actor is not allowed to perform this action."""

    code = "forbidden"


class StorageTimeoutError(ReservationError):
    """Storage did not answer within its bound. Safe to retry."""

    code = "storage_timeout"
    retryable = True
