"""In-process reservation store.

Creations and approvals on a room are serialized behind a per-room lock
held for the whole check-plus-write. Every other mutation of a reservation
takes only that reservation's lock; lock order is always room, then
reservation. Only correct within a single process: used for local
development and tests, production uses the PostgreSQL store.
"""

from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager, nullcontext
from dataclasses import replace
from typing import Callable, ContextManager, Iterator, Sequence

from guesthouse.domain import lifecycle
from guesthouse.domain.errors import (
    NotFoundError,
    ReservationNotPendingError,
    StorageTimeoutError,
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
from guesthouse.domain.room_conflict import assert_no_room_conflict, validate_date_range
from guesthouse.infra.time import utc_now


class InMemoryReservationStore:
    """ReservationStore keeping everything in dicts guarded by per-room locks."""

    def __init__(
        self,
        *,
        lock_timeout_ms: int = 2000,
        clock: Callable = utc_now,
    ) -> None:
        self._lock_timeout_s = lock_timeout_ms / 1000
        self._clock = clock
        self._index_lock = threading.Lock()
        self._room_locks: dict[str, threading.Lock] = {}
        self._reservation_locks: dict[str, threading.Lock] = {}
        self._reservations: dict[str, Reservation] = {}
        self._members: dict[str, list[ReservationMember]] = {}
        self._history: dict[str, list[StatusChange]] = {}

    @contextmanager
    def _acquire(self, lock: threading.Lock, operation: str, target: str) -> Iterator[None]:
        if not lock.acquire(timeout=self._lock_timeout_s):
            raise StorageTimeoutError(f"{operation} timed out waiting for {target}")
        try:
            yield
        finally:
            lock.release()

    def _room_guard(self, room_id: str, operation: str) -> ContextManager[None]:
        with self._index_lock:
            lock = self._room_locks.setdefault(room_id, threading.Lock())
        return self._acquire(lock, operation, f"room {room_id}")

    def _reservation_guard(self, reservation_id: str, operation: str) -> ContextManager[None]:
        with self._index_lock:
            lock = self._reservation_locks.setdefault(reservation_id, threading.Lock())
        return self._acquire(lock, operation, f"reservation {reservation_id}")

    def _snapshot(self, reservation: Reservation) -> Reservation:
        return replace(reservation)

    def _lookup(self, reservation_id: str) -> Reservation:
        with self._index_lock:
            reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def _room_reservations(self, room_id: str) -> list[Reservation]:
        with self._index_lock:
            return sorted(
                (r for r in self._reservations.values() if r.room_id == room_id),
                key=lambda r: (r.check_in, r.id),
            )

    def _log(
        self,
        reservation_id: str,
        from_status: ReservationStatus | None,
        to_status: ReservationStatus,
        changed_by: str,
        notes: str | None,
        at,
    ) -> None:
        with self._index_lock:
            self._history.setdefault(reservation_id, []).append(
                StatusChange(reservation_id, from_status, to_status, changed_by, notes, at)
            )

    def _new_members(
        self, reservation_id: str, members: Sequence[NewMember], now
    ) -> list[ReservationMember]:
        return [
            ReservationMember(
                id=str(uuid.uuid4()),
                reservation_id=reservation_id,
                full_name=m.full_name,
                id_proof_ref=m.id_proof_ref,
                id_proof_type=m.id_proof_type,
                created_at=now,
            )
            for m in members
        ]

    # ── reads ───────────────────────────────────────────────────────────

    def list_active_by_room(self, room_id: str) -> list[Reservation]:
        return [self._snapshot(r) for r in self._room_reservations(room_id) if r.is_active]

    def list_by_room(self, room_id: str) -> list[Reservation]:
        return [self._snapshot(r) for r in self._room_reservations(room_id)]

    def list_by_requester(self, requester_id: str) -> list[Reservation]:
        with self._index_lock:
            owned = [r for r in self._reservations.values() if r.requester_id == requester_id]
        owned.sort(key=lambda r: (r.check_in, r.id), reverse=True)
        return [self._snapshot(r) for r in owned]

    def get(self, reservation_id: str) -> Reservation:
        return self._snapshot(self._lookup(reservation_id))

    def list_members(self, reservation_id: str) -> list[ReservationMember]:
        with self._index_lock:
            return list(self._members.get(reservation_id, []))

    def list_status_history(self, reservation_id: str) -> list[StatusChange]:
        with self._index_lock:
            return list(self._history.get(reservation_id, []))

    # ── writes ──────────────────────────────────────────────────────────

    def create_if_available(
        self,
        candidate: NewReservation,
        members: Sequence[NewMember] = (),
    ) -> Reservation:
        validate_date_range(candidate.check_in, candidate.check_out)
        if len(members) > candidate.guest_count:
            raise ValidationError("more members than guests")

        with self._room_guard(candidate.room_id, "create_if_available"):
            assert_no_room_conflict(
                self._room_reservations(candidate.room_id),
                room_id=candidate.room_id,
                check_in=candidate.check_in,
                check_out=candidate.check_out,
            )
            now = self._clock()
            reservation = Reservation(
                id=str(uuid.uuid4()),
                requester_id=candidate.requester_id,
                room_id=candidate.room_id,
                guest_house_id=candidate.guest_house_id,
                check_in=candidate.check_in,
                check_out=candidate.check_out,
                guest_count=candidate.guest_count,
                total_amount=candidate.total_amount,
                created_at=now,
                updated_at=now,
            )
            attached = self._new_members(reservation.id, members, now)
            with self._index_lock:
                self._reservations[reservation.id] = reservation
                self._members[reservation.id] = attached
            self._log(reservation.id, None, ReservationStatus.PENDING, candidate.requester_id, None, now)

        return self._snapshot(reservation)

    def update_status(
        self,
        reservation_id: str,
        target: ReservationStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Reservation:
        current = self._lookup(reservation_id)
        # a reservation never returns to pending, so only an approval seen
        # here can still be an approval once the reservation lock is held
        edge = lifecycle.TRANSITIONS.get((current.status, target))
        needs_room = edge is not None and edge.requires_availability
        room_guard = (
            self._room_guard(current.room_id, "update_status") if needs_room else nullcontext()
        )

        with room_guard, self._reservation_guard(reservation_id, "update_status"):
            reservation = self._lookup(reservation_id)
            transition = lifecycle.check_transition(reservation, target, actor)

            if transition.requires_availability:
                assert_no_room_conflict(
                    self._room_reservations(reservation.room_id),
                    room_id=reservation.room_id,
                    check_in=reservation.check_in,
                    check_out=reservation.check_out,
                    exclude_reservation_id=reservation.id,
                )

            previous = reservation.status
            now = self._clock()
            reservation.status = target
            if notes is not None:
                reservation.operator_notes = notes
            reservation.updated_at = now
            self._log(reservation.id, previous, target, actor.id, notes, now)

            return self._snapshot(reservation)

    def update_payment_status(
        self,
        reservation_id: str,
        payment_status: PaymentStatus,
        actor: Actor,
    ) -> Reservation:
        self._lookup(reservation_id)

        with self._reservation_guard(reservation_id, "update_payment_status"):
            reservation = self._lookup(reservation_id)
            lifecycle.require_payment_access(actor, reservation)

            now = self._clock()
            reservation.payment_status = payment_status
            reservation.updated_at = now

            if payment_status == PaymentStatus.COMPLETED and reservation.status == ReservationStatus.APPROVED:
                lifecycle.resolve_transition(reservation.status, ReservationStatus.PAID)
                reservation.status = ReservationStatus.PAID
                self._log(
                    reservation.id,
                    ReservationStatus.APPROVED,
                    ReservationStatus.PAID,
                    actor.id,
                    "payment completed",
                    now,
                )

            return self._snapshot(reservation)

    def add_members(
        self,
        reservation_id: str,
        members: Sequence[NewMember],
        actor: Actor,
    ) -> list[ReservationMember]:
        self._lookup(reservation_id)

        with self._reservation_guard(reservation_id, "add_members"):
            reservation = self._lookup(reservation_id)
            lifecycle.require_access(actor, reservation)

            if reservation.status != ReservationStatus.PENDING:
                raise ReservationNotPendingError(reservation.id, reservation.status.value)

            with self._index_lock:
                attached = self._members.setdefault(reservation.id, [])
                if len(attached) + len(members) > reservation.guest_count:
                    raise ValidationError(
                        f"Reservation {reservation.id} allows {reservation.guest_count} members, "
                        f"{len(attached)} already attached"
                    )
                created = self._new_members(reservation.id, members, self._clock())
                attached.extend(created)

            return created
