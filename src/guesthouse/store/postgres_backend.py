"""PostgreSQL reservation store.

Overlap safety rests on the ``no_room_overlap`` exclusion constraint:

    EXCLUDE USING GIST (room_id WITH =,
                        daterange(check_in_date, check_out_date, '[)') WITH &&)
    WHERE (status NOT IN ('rejected', 'cancelled'))

The in-transaction pre-check only produces a descriptive conflict; the
constraint is what makes two concurrent inserts (from any number of engine
processes) unable to both commit. Approvals additionally lock the room row
so concurrent approvals for one room are serialized.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Sequence

from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from guesthouse.domain import lifecycle
from guesthouse.domain.errors import (
    NotFoundError,
    ReservationNotPendingError,
    ValidationError,
)
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
from guesthouse.domain.room_conflict import (
    RoomConflictError,
    assert_no_room_conflict,
    validate_date_range,
)
from guesthouse.infra.db import storage_errors, txn
from guesthouse.infra.repositories import members_repository, reservations_repository
from guesthouse.infra.settings import StorageSettings, get_storage_settings
from guesthouse.observability.logging import get_logger
from guesthouse.observability.redaction import safe_log_context

logger = get_logger(__name__)


class PostgresReservationStore:
    """ReservationStore backed by PostgreSQL via psycopg2."""

    def __init__(self, settings: StorageSettings | None = None) -> None:
        self._settings = settings or get_storage_settings()

    @contextmanager
    def _txn(self, operation: str) -> Iterator[PgCursor]:
        """Bounded transaction; lock/statement timeouts become StorageTimeoutError."""
        with storage_errors(operation), txn(
            lock_timeout_ms=self._settings.lock_timeout_ms,
            statement_timeout_ms=self._settings.statement_timeout_ms,
        ) as cur:
            yield cur

    def _locked(self, cur: PgCursor, reservation_id: str) -> Reservation:
        reservation = reservations_repository.get_reservation(cur, reservation_id, for_update=True)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    # ── reads ───────────────────────────────────────────────────────────

    def list_active_by_room(self, room_id: str) -> list[Reservation]:
        with self._txn("list_active_by_room") as cur:
            return reservations_repository.list_reservations_by_room(cur, room_id, active_only=True)

    def list_by_room(self, room_id: str) -> list[Reservation]:
        with self._txn("list_by_room") as cur:
            return reservations_repository.list_reservations_by_room(cur, room_id, active_only=False)

    def list_by_requester(self, requester_id: str) -> list[Reservation]:
        with self._txn("list_by_requester") as cur:
            return reservations_repository.list_reservations_by_requester(cur, requester_id)

    def get(self, reservation_id: str) -> Reservation:
        with self._txn("get") as cur:
            reservation = reservations_repository.get_reservation(cur, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def list_members(self, reservation_id: str) -> list[ReservationMember]:
        with self._txn("list_members") as cur:
            return members_repository.list_members(cur, reservation_id)

    def list_status_history(self, reservation_id: str) -> list[StatusChange]:
        with self._txn("list_status_history") as cur:
            return reservations_repository.list_status_logs(cur, reservation_id)

    # ── writes ──────────────────────────────────────────────────────────

    def create_if_available(
        self,
        candidate: NewReservation,
        members: Sequence[NewMember] = (),
    ) -> Reservation:
        """Check and insert, with any members, in one transaction.

        The exclusion constraint decides races; a failure while attaching
        members rolls the reservation back with them.

        Raises:
            ValidationError: check_in >= check_out, or more members than guests.
            RoomConflictError: An active reservation overlaps the range.
            StorageTimeoutError: Storage did not answer in time.
        """
        validate_date_range(candidate.check_in, candidate.check_out)
        if len(members) > candidate.guest_count:
            raise ValidationError("more members than guests")

        with self._txn("create_if_available") as cur:
            overlapping = reservations_repository.list_reservations_by_room(
                cur,
                candidate.room_id,
                active_only=True,
                overlapping=(candidate.check_in, candidate.check_out),
            )
            assert_no_room_conflict(
                overlapping,
                room_id=candidate.room_id,
                check_in=candidate.check_in,
                check_out=candidate.check_out,
            )

            try:
                reservation = reservations_repository.insert_reservation(cur, candidate)
            except pg_errors.ExclusionViolation as exc:
                # lost the race to a concurrent insert that committed first
                logger.warning(
                    "room conflict on insert",
                    extra={
                        "extra_fields": safe_log_context(
                            room_id=candidate.room_id,
                            requested_check_in=candidate.check_in,
                            requested_check_out=candidate.check_out,
                        )
                    },
                )
                raise RoomConflictError(room_id=candidate.room_id) from exc

            reservations_repository.insert_status_log(
                cur,
                reservation_id=reservation.id,
                from_status=None,
                to_status=ReservationStatus.PENDING,
                changed_by=candidate.requester_id,
            )

            for member in members:
                members_repository.insert_member(cur, reservation_id=reservation.id, member=member)

        return reservation

    def update_status(
        self,
        reservation_id: str,
        target: ReservationStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Reservation:
        with self._txn("update_status") as cur:
            reservation = self._locked(cur, reservation_id)
            transition = lifecycle.check_transition(reservation, target, actor)

            if transition.requires_availability:
                # first-approved-wins: serialize approvals on this room
                if not reservations_repository.lock_room(cur, reservation.room_id):
                    raise NotFoundError(f"Room {reservation.room_id} not found")
                others = reservations_repository.list_reservations_by_room(
                    cur,
                    reservation.room_id,
                    active_only=True,
                    overlapping=(reservation.check_in, reservation.check_out),
                )
                assert_no_room_conflict(
                    others,
                    room_id=reservation.room_id,
                    check_in=reservation.check_in,
                    check_out=reservation.check_out,
                    exclude_reservation_id=reservation.id,
                )

            updated = reservations_repository.update_reservation_status(
                cur,
                reservation_id=reservation.id,
                from_status=reservation.status,
                to_status=target,
                notes=notes,
            )
            if updated is None:
                # row is locked, so this only happens if it vanished mid-transaction
                raise NotFoundError(f"Reservation {reservation_id} not found")

            reservations_repository.insert_status_log(
                cur,
                reservation_id=reservation.id,
                from_status=reservation.status,
                to_status=target,
                changed_by=actor.id,
                notes=notes,
            )

        return updated

    def update_payment_status(
        self,
        reservation_id: str,
        payment_status: PaymentStatus,
        actor: Actor,
    ) -> Reservation:
        with self._txn("update_payment_status") as cur:
            reservation = self._locked(cur, reservation_id)
            lifecycle.require_payment_access(actor, reservation)

            updated = reservations_repository.update_payment_status(
                cur, reservation_id=reservation.id, payment_status=payment_status
            )
            if updated is None:
                raise NotFoundError(f"Reservation {reservation_id} not found")

            if payment_status == PaymentStatus.COMPLETED and updated.status == ReservationStatus.APPROVED:
                lifecycle.resolve_transition(updated.status, ReservationStatus.PAID)
                paid = reservations_repository.update_reservation_status(
                    cur,
                    reservation_id=reservation.id,
                    from_status=ReservationStatus.APPROVED,
                    to_status=ReservationStatus.PAID,
                )
                if paid is not None:
                    reservations_repository.insert_status_log(
                        cur,
                        reservation_id=reservation.id,
                        from_status=ReservationStatus.APPROVED,
                        to_status=ReservationStatus.PAID,
                        changed_by=actor.id,
                        notes="payment completed",
                    )
                    updated = paid

        return updated

    def add_members(
        self,
        reservation_id: str,
        members: Sequence[NewMember],
        actor: Actor,
    ) -> list[ReservationMember]:
        with self._txn("add_members") as cur:
            reservation = self._locked(cur, reservation_id)
            lifecycle.require_access(actor, reservation)

            if reservation.status != ReservationStatus.PENDING:
                raise ReservationNotPendingError(reservation.id, reservation.status.value)

            existing = members_repository.count_members(cur, reservation.id)
            if existing + len(members) > reservation.guest_count:
                raise ValidationError(
                    f"Reservation {reservation.id} allows {reservation.guest_count} members, "
                    f"{existing} already attached"
                )

            return [
                members_repository.insert_member(cur, reservation_id=reservation.id, member=m)
                for m in members
            ]
