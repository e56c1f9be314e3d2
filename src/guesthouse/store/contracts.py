"""Reservation store contract shared by all storage backends."""

from __future__ import annotations

from typing import Protocol, Sequence

from guesthouse.domain.models import (
    Actor,
    NewMember,
    NewReservation,
    PaymentStatus,
    Reservation,
    ReservationMember,
    ReservationStatus,
    StatusChange,
)


class ReservationStore(Protocol):
    """Durable reservations keyed by room.

    Implementations must make create_if_available atomic with respect to
    the room's active reservation set, and serialize approvals per room
    against other approvals and creations. Every call is bounded in time
    and raises StorageTimeoutError instead of blocking indefinitely.
    """

    def list_active_by_room(self, room_id: str) -> list[Reservation]:
        """Reservations of the room whose status is not rejected/cancelled."""
        ...

    def list_by_room(self, room_id: str) -> list[Reservation]:
        ...

    def list_by_requester(self, requester_id: str) -> list[Reservation]:
        ...

    def get(self, reservation_id: str) -> Reservation:
        """Raises NotFoundError."""
        ...

    def create_if_available(
        self,
        candidate: NewReservation,
        members: Sequence[NewMember] = (),
    ) -> Reservation:
        """Insert a pending reservation and its members, or raise ConflictError.

        All or nothing: no reservation survives a failure to attach members.
        """
        ...

    def update_status(
        self,
        reservation_id: str,
        target: ReservationStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Reservation:
        """Apply a lifecycle transition.

        Raises NotFoundError, InvalidTransitionError, PermissionDeniedError,
        or ConflictError when an approval loses the room.
        """
        ...

    def update_payment_status(
        self,
        reservation_id: str,
        payment_status: PaymentStatus,
        actor: Actor,
    ) -> Reservation:
        """Record the payment signal; completed payment advances approved -> paid.

        Raises PermissionDeniedError for a requester once the reservation is
        past approved or closed.
        """
        ...

    def add_members(
        self,
        reservation_id: str,
        members: Sequence[NewMember],
        actor: Actor,
    ) -> list[ReservationMember]:
        """Raises ReservationNotPendingError unless the reservation is pending."""
        ...

    def list_members(self, reservation_id: str) -> list[ReservationMember]:
        ...

    def list_status_history(self, reservation_id: str) -> list[StatusChange]:
        ...
