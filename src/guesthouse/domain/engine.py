"""Reservation engine - the entry point the API (and any other caller) uses.

Orchestrates validation, pricing and the store's atomic operations:

    request_reservation:  validate -> price -> store.create_if_available (with members)
    transition_status:    store.update_status (lifecycle check + approval re-check)

Authorization lives here and in the lifecycle module, never in SQL: the
engine trusts ``Actor.is_operator`` from the identity provider and checks
ownership itself.

Only StorageTimeoutError is retried, a bounded number of times with
exponential backoff. Retrying a create is safe: a timed-out transaction
is rolled back and the room's exclusion guard rejects any duplicate range.
"""

from __future__ import annotations

import time
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Sequence, TypeVar

from guesthouse.domain import lifecycle
from guesthouse.domain.errors import (
    NotFoundError,
    PermissionDeniedError,
    StorageTimeoutError,
    ValidationError,
)
from guesthouse.domain.models import (
    MAX_GUESTS_PER_ROOM,
    Actor,
    NewMember,
    NewReservation,
    PaymentStatus,
    Reservation,
    ReservationMember,
    ReservationStatus,
    Room,
    StatusChange,
)
from guesthouse.domain.room_conflict import is_available, validate_date_range
from guesthouse.infra.catalog import CatalogService
from guesthouse.infra.time import nights_between
from guesthouse.observability.logging import get_logger
from guesthouse.observability.redaction import safe_log_context
from guesthouse.store.contracts import ReservationStore

logger = get_logger(__name__)

T = TypeVar("T")

_CENTS = Decimal("0.01")


def compute_total_amount(nights: int, guest_count: int, price_per_person: Decimal) -> Decimal:
    """nights x guests x per-person price, rounded to cents."""
    return (Decimal(nights) * Decimal(guest_count) * Decimal(price_per_person)).quantize(
        _CENTS, rounding=ROUND_HALF_UP
    )


def _validate_members(members: Sequence[NewMember]) -> None:
    for member in members:
        if not member.full_name or not member.full_name.strip():
            raise ValidationError("member full_name must not be empty")


class ReservationEngine:
    """Reservation use cases over a store and a catalog."""

    def __init__(
        self,
        store: ReservationStore,
        catalog: CatalogService,
        *,
        retry_attempts: int = 3,
        retry_backoff_ms: int = 50,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff_s = retry_backoff_ms / 1000
        self._sleep = sleep

    def _with_retry(self, operation: str, fn: Callable[[], T]) -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except StorageTimeoutError:
                if attempt >= self._retry_attempts:
                    logger.error(
                        "storage timeout, giving up",
                        extra={"extra_fields": safe_log_context(operation=operation, attempts=attempt)},
                    )
                    raise
                delay = self._retry_backoff_s * (2 ** (attempt - 1))
                logger.warning(
                    "storage timeout, retrying",
                    extra={
                        "extra_fields": safe_log_context(
                            operation=operation, attempt=attempt, delay_s=delay
                        )
                    },
                )
                self._sleep(delay)
                attempt += 1

    def _room(self, room_id: str) -> Room:
        room = self._with_retry("get_room", lambda: self.catalog.get_room(room_id))
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    def _visible(self, reservation_id: str, actor: Actor) -> Reservation:
        reservation = self._with_retry("get", lambda: self.store.get(reservation_id))
        lifecycle.require_access(actor, reservation)
        return reservation

    # ── availability ────────────────────────────────────────────────────

    def is_available(self, room_id: str, check_in: date, check_out: date) -> bool:
        """Advisory snapshot; only create_if_available is binding."""
        validate_date_range(check_in, check_out)
        self._room(room_id)
        active = self._with_retry(
            "list_active_by_room", lambda: self.store.list_active_by_room(room_id)
        )
        return is_available(active, check_in=check_in, check_out=check_out)

    # ── creation ────────────────────────────────────────────────────────

    def request_reservation(
        self,
        requester_id: str,
        room_id: str,
        check_in: date,
        check_out: date,
        guest_count: int,
        members: Sequence[NewMember] = (),
    ) -> Reservation:
        """Create a pending reservation if the room is free for [check_in, check_out).

        Raises:
            ValidationError: Bad dates, guest count or members.
            NotFoundError: Unknown room.
            ConflictError: The dates are unavailable.
            StorageTimeoutError: Storage still timing out after retries.
        """
        validate_date_range(check_in, check_out)
        room = self._room(room_id)

        max_guests = min(room.max_occupancy, MAX_GUESTS_PER_ROOM)
        if not 1 <= guest_count <= max_guests:
            raise ValidationError(f"guest_count must be between 1 and {max_guests}")
        if len(members) > guest_count:
            raise ValidationError("more members than guests")
        _validate_members(members)

        candidate = NewReservation(
            requester_id=requester_id,
            room_id=room.id,
            guest_house_id=room.guest_house_id,
            check_in=check_in,
            check_out=check_out,
            guest_count=guest_count,
            total_amount=compute_total_amount(
                nights_between(check_in, check_out), guest_count, room.price_per_person
            ),
        )

        reservation = self._with_retry(
            "create_if_available", lambda: self.store.create_if_available(candidate, members)
        )

        logger.info(
            "reservation requested",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    room_id=reservation.room_id,
                    check_in=reservation.check_in,
                    check_out=reservation.check_out,
                    guest_count=reservation.guest_count,
                    member_count=len(members),
                    total_amount=reservation.total_amount,
                )
            },
        )

        return reservation

    # ── lifecycle ───────────────────────────────────────────────────────

    def transition_status(
        self,
        reservation_id: str,
        actor: Actor,
        target_status: ReservationStatus | str,
        notes: str | None = None,
    ) -> Reservation:
        """Move a reservation along the lifecycle.

        pending -> approved re-checks the room against its other active
        reservations under the store's per-room guard (first-approved-wins).

        Raises:
            ValidationError: Unknown target status.
            NotFoundError, InvalidTransitionError, PermissionDeniedError,
            ConflictError, StorageTimeoutError.
        """
        try:
            target = ReservationStatus(target_status)
        except ValueError:
            raise ValidationError(f"Unknown status: {target_status}")

        reservation = self._with_retry(
            "update_status",
            lambda: self.store.update_status(reservation_id, target, actor, notes),
        )

        logger.info(
            "reservation status changed",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    room_id=reservation.room_id,
                    to_status=reservation.status,
                    changed_by=actor.id,
                    operator=actor.is_operator,
                )
            },
        )
        return reservation

    def record_payment(
        self,
        reservation_id: str,
        actor: Actor,
        payment_status: PaymentStatus | str,
    ) -> Reservation:
        """Record the payment signal.

        A completed payment on an approved reservation advances it to paid.
        The payment status never gates any other transition.
        """
        try:
            status = PaymentStatus(payment_status)
        except ValueError:
            raise ValidationError(f"Unknown payment status: {payment_status}")

        reservation = self._with_retry(
            "update_payment_status",
            lambda: self.store.update_payment_status(reservation_id, status, actor),
        )

        logger.info(
            "payment status recorded",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    payment_status=reservation.payment_status,
                    status=reservation.status,
                )
            },
        )
        return reservation

    def add_members(
        self,
        reservation_id: str,
        actor: Actor,
        members: Sequence[NewMember],
    ) -> list[ReservationMember]:
        if not members:
            raise ValidationError("at least one member is required")
        _validate_members(members)
        return self._with_retry(
            "add_members",
            lambda: self.store.add_members(reservation_id, members, actor),
        )

    # ── reads ───────────────────────────────────────────────────────────

    def get_reservation(self, reservation_id: str, actor: Actor) -> Reservation:
        return self._visible(reservation_id, actor)

    def list_members(self, reservation_id: str, actor: Actor) -> list[ReservationMember]:
        self._visible(reservation_id, actor)
        return self._with_retry("list_members", lambda: self.store.list_members(reservation_id))

    def status_history(self, reservation_id: str, actor: Actor) -> list[StatusChange]:
        self._visible(reservation_id, actor)
        return self._with_retry(
            "list_status_history", lambda: self.store.list_status_history(reservation_id)
        )

    def list_reservations(self, actor: Actor, *, room_id: str | None = None) -> list[Reservation]:
        """Own reservations; operators may instead list a room's reservations."""
        if room_id is None:
            return self._with_retry(
                "list_by_requester", lambda: self.store.list_by_requester(actor.id)
            )
        if not actor.is_operator:
            raise PermissionDeniedError("Only operators can list a room's reservations")
        return self._with_retry("list_by_room", lambda: self.store.list_by_room(room_id))
