"""Tests for the in-process reservation store."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from guesthouse.domain.errors import NotFoundError, StorageTimeoutError, ValidationError
from guesthouse.domain.models import (
    Actor,
    NewMember,
    NewReservation,
    PaymentStatus,
    ReservationStatus,
)
from guesthouse.domain.room_conflict import RoomConflictError
from guesthouse.store.memory_backend import InMemoryReservationStore

from helpers import HOUSE_ID, ROOM_ID, d

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
OPERATOR = Actor(id="op-1", is_operator=True)


def _candidate(check_in, check_out, requester_id="user-a", guest_count=1):
    return NewReservation(
        requester_id=requester_id,
        room_id=ROOM_ID,
        guest_house_id=HOUSE_ID,
        check_in=check_in,
        check_out=check_out,
        guest_count=guest_count,
        total_amount=Decimal("600.00"),
    )


@pytest.fixture
def store():
    return InMemoryReservationStore(lock_timeout_ms=50, clock=lambda: FIXED_NOW)


def test_create_records_initial_history(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))

    assert reservation.status == ReservationStatus.PENDING
    assert reservation.created_at == FIXED_NOW
    (entry,) = store.list_status_history(reservation.id)
    assert entry.from_status is None
    assert entry.to_status == ReservationStatus.PENDING
    assert entry.changed_by == "user-a"


def test_overlap_raises_room_conflict(store):
    existing = store.create_if_available(_candidate(d(1), d(5)))
    with pytest.raises(RoomConflictError) as exc_info:
        store.create_if_available(_candidate(d(3), d(7), requester_id="user-b"))
    assert exc_info.value.conflicting_reservation_id == existing.id


def test_returned_reservations_are_snapshots(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))
    reservation.status = ReservationStatus.CANCELLED

    assert store.get(reservation.id).status == ReservationStatus.PENDING
    assert len(store.list_active_by_room(ROOM_ID)) == 1


def test_active_listing_skips_cancelled(store):
    kept = store.create_if_available(_candidate(d(1), d(3)))
    dropped = store.create_if_available(_candidate(d(5), d(7)))
    store.update_status(dropped.id, ReservationStatus.CANCELLED, OPERATOR)

    assert [r.id for r in store.list_active_by_room(ROOM_ID)] == [kept.id]
    assert len(store.list_by_room(ROOM_ID)) == 2


def test_get_unknown(store):
    with pytest.raises(NotFoundError):
        store.get("missing")


def test_room_lock_timeout_is_retryable(store):
    with store._room_guard(ROOM_ID, "test"):
        with pytest.raises(StorageTimeoutError) as exc_info:
            store.create_if_available(_candidate(d(1), d(3)))
    assert exc_info.value.retryable

    # guard released: the same create now succeeds
    assert store.create_if_available(_candidate(d(1), d(3))).room_id == ROOM_ID


def test_other_rooms_not_blocked_by_room_lock(store):
    other = NewReservation(
        requester_id="user-a",
        room_id="room-other",
        guest_house_id=HOUSE_ID,
        check_in=d(1),
        check_out=d(3),
        guest_count=1,
        total_amount=Decimal("400.00"),
    )
    with store._room_guard(ROOM_ID, "test"):
        assert store.create_if_available(other).room_id == "room-other"


def test_create_attaches_members(store):
    reservation = store.create_if_available(
        _candidate(d(1), d(3), guest_count=2), [NewMember("Asha"), NewMember("Ravi")]
    )
    members = store.list_members(reservation.id)
    assert [m.full_name for m in members] == ["Asha", "Ravi"]
    assert all(m.reservation_id == reservation.id for m in members)


def test_create_with_too_many_members_stores_nothing(store):
    with pytest.raises(ValidationError):
        store.create_if_available(_candidate(d(1), d(3)), [NewMember("A"), NewMember("B")])
    assert store.list_by_room(ROOM_ID) == []


def test_cancel_does_not_wait_for_room_lock(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))
    with store._room_guard(ROOM_ID, "test"):
        cancelled = store.update_status(reservation.id, ReservationStatus.CANCELLED, OPERATOR)
    assert cancelled.status == ReservationStatus.CANCELLED


def test_payment_does_not_wait_for_room_lock(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))
    with store._room_guard(ROOM_ID, "test"):
        store.update_payment_status(reservation.id, PaymentStatus.FAILED, OPERATOR)
    assert store.get(reservation.id).payment_status == PaymentStatus.FAILED


def test_approval_waits_for_room_lock(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))
    with store._room_guard(ROOM_ID, "test"):
        with pytest.raises(StorageTimeoutError):
            store.update_status(reservation.id, ReservationStatus.APPROVED, OPERATOR)
    assert store.get(reservation.id).status == ReservationStatus.PENDING


def test_cancel_waits_for_reservation_lock(store):
    reservation = store.create_if_available(_candidate(d(1), d(3)))
    with store._reservation_guard(reservation.id, "test"):
        with pytest.raises(StorageTimeoutError):
            store.update_status(reservation.id, ReservationStatus.CANCELLED, OPERATOR)
    assert store.get(reservation.id).status == ReservationStatus.PENDING
