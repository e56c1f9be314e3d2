"""Unit tests for the PostgreSQL reservation store.

The transaction and repositories are mocked, so these run without
Postgres. Overlap behaviour against a real database is covered in
test_db_concurrency.py.
"""

from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2 import errors as pg_errors

from guesthouse.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
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
    ReservationStatus,
)
from guesthouse.domain.room_conflict import RoomConflictError
from guesthouse.infra.settings import StorageSettings
from guesthouse.store.postgres_backend import PostgresReservationStore

from helpers import HOUSE_ID, ROOM_ID, d

S = ReservationStatus
OWNER = Actor(id="user-a")
OPERATOR = Actor(id="op-1", is_operator=True)
SETTINGS = StorageSettings(lock_timeout_ms=1500, statement_timeout_ms=4000)


def _reservation(res_id="res-1", status=S.PENDING, check_in=d(1), check_out=d(5), **kwargs):
    return Reservation(
        id=res_id,
        requester_id=kwargs.pop("requester_id", "user-a"),
        room_id=ROOM_ID,
        guest_house_id=HOUSE_ID,
        check_in=check_in,
        check_out=check_out,
        guest_count=kwargs.pop("guest_count", 2),
        total_amount=Decimal("4800.00"),
        status=status,
        **kwargs,
    )


def _candidate():
    return NewReservation(
        requester_id="user-a",
        room_id=ROOM_ID,
        guest_house_id=HOUSE_ID,
        check_in=d(1),
        check_out=d(5),
        guest_count=2,
        total_amount=Decimal("4800.00"),
    )


@pytest.fixture
def cur():
    return MagicMock()


@pytest.fixture
def txn_calls(cur):
    """Patch the store's txn() to yield the mock cursor; records timeout kwargs."""
    calls = []

    @contextmanager
    def fake_txn(*args, **kwargs):
        calls.append(kwargs)
        yield cur

    with patch("guesthouse.store.postgres_backend.txn", fake_txn):
        yield calls


@pytest.fixture
def repo(txn_calls):
    with patch("guesthouse.store.postgres_backend.reservations_repository") as mock:
        yield mock


@pytest.fixture
def members_repo(txn_calls):
    with patch("guesthouse.store.postgres_backend.members_repository") as mock:
        yield mock


@pytest.fixture
def store():
    return PostgresReservationStore(SETTINGS)


def _raising_txn(exc):
    @contextmanager
    def fake_txn(*args, **kwargs):
        raise exc
        yield  # pragma: no cover

    return fake_txn


class TestTransactionBounds:
    def test_timeouts_passed_to_txn(self, store, repo, txn_calls):
        repo.list_reservations_by_room.return_value = []
        store.list_active_by_room(ROOM_ID)
        assert txn_calls == [{"lock_timeout_ms": 1500, "statement_timeout_ms": 4000}]

    @pytest.mark.parametrize(
        "exc",
        [
            pg_errors.LockNotAvailable("lock timeout"),
            pg_errors.QueryCanceled("statement timeout"),
            psycopg2.OperationalError("server closed the connection"),
        ],
    )
    def test_storage_errors_become_retryable_timeouts(self, store, exc):
        with patch("guesthouse.store.postgres_backend.txn", _raising_txn(exc)):
            with pytest.raises(StorageTimeoutError) as exc_info:
                store.get("res-1")
        assert exc_info.value.retryable
        assert exc_info.value.__cause__ is exc

    def test_domain_errors_pass_through(self, store, repo):
        repo.get_reservation.return_value = None
        with pytest.raises(NotFoundError):
            store.get("missing")


class TestCreateIfAvailable:
    def test_inserts_and_logs_when_free(self, store, repo, cur):
        repo.list_reservations_by_room.return_value = []
        repo.insert_reservation.return_value = _reservation()

        reservation = store.create_if_available(_candidate())

        assert reservation.id == "res-1"
        repo.list_reservations_by_room.assert_called_once_with(
            cur, ROOM_ID, active_only=True, overlapping=(d(1), d(5))
        )
        repo.insert_status_log.assert_called_once_with(
            cur,
            reservation_id="res-1",
            from_status=None,
            to_status=S.PENDING,
            changed_by="user-a",
        )

    def test_members_inserted_in_same_transaction(self, store, repo, members_repo, cur, txn_calls):
        repo.list_reservations_by_room.return_value = []
        repo.insert_reservation.return_value = _reservation()
        members = [NewMember("Asha"), NewMember("Ravi")]

        store.create_if_available(_candidate(), members)

        assert len(txn_calls) == 1
        assert members_repo.insert_member.call_count == 2
        members_repo.insert_member.assert_any_call(cur, reservation_id="res-1", member=members[1])

    def test_member_insert_timeout_fails_whole_create(self, store, repo, members_repo):
        repo.list_reservations_by_room.return_value = []
        repo.insert_reservation.return_value = _reservation()
        members_repo.insert_member.side_effect = pg_errors.QueryCanceled("statement timeout")

        with pytest.raises(StorageTimeoutError):
            store.create_if_available(_candidate(), [NewMember("Asha")])
        repo.insert_reservation.assert_called_once()

    def test_more_members_than_guests_never_opens_transaction(self, store, txn_calls):
        members = [NewMember("A"), NewMember("B"), NewMember("C")]
        with pytest.raises(ValidationError):
            store.create_if_available(_candidate(), members)
        assert txn_calls == []

    def test_precheck_conflict_skips_insert(self, store, repo):
        repo.list_reservations_by_room.return_value = [
            _reservation("res-99", check_in=d(3), check_out=d(8))
        ]

        with pytest.raises(RoomConflictError) as exc_info:
            store.create_if_available(_candidate())

        assert exc_info.value.conflicting_reservation_id == "res-99"
        repo.insert_reservation.assert_not_called()

    def test_exclusion_violation_is_conflict(self, store, repo):
        """A concurrent insert committed between pre-check and insert."""
        repo.list_reservations_by_room.return_value = []
        repo.insert_reservation.side_effect = pg_errors.ExclusionViolation("no_room_overlap")

        with pytest.raises(RoomConflictError) as exc_info:
            store.create_if_available(_candidate())

        assert exc_info.value.room_id == ROOM_ID
        assert not exc_info.value.retryable
        repo.insert_status_log.assert_not_called()

    def test_bad_range_never_opens_transaction(self, store, txn_calls):
        candidate = NewReservation(
            requester_id="user-a",
            room_id=ROOM_ID,
            guest_house_id=HOUSE_ID,
            check_in=d(5),
            check_out=d(5),
            guest_count=1,
            total_amount=Decimal("0"),
        )
        with pytest.raises(ValidationError):
            store.create_if_available(candidate)
        assert txn_calls == []


class TestUpdateStatus:
    def test_approval_locks_room_and_rechecks(self, store, repo, cur):
        current = _reservation()
        repo.get_reservation.return_value = current
        repo.lock_room.return_value = True
        repo.list_reservations_by_room.return_value = [current]
        repo.update_reservation_status.return_value = _reservation(status=S.APPROVED)

        result = store.update_status("res-1", S.APPROVED, OPERATOR, "ok")

        assert result.status == S.APPROVED
        repo.get_reservation.assert_called_once_with(cur, "res-1", for_update=True)
        repo.lock_room.assert_called_once_with(cur, ROOM_ID)
        repo.update_reservation_status.assert_called_once_with(
            cur, reservation_id="res-1", from_status=S.PENDING, to_status=S.APPROVED, notes="ok"
        )
        repo.insert_status_log.assert_called_once()

    def test_approval_conflict_leaves_row_untouched(self, store, repo):
        repo.get_reservation.return_value = _reservation()
        repo.lock_room.return_value = True
        repo.list_reservations_by_room.return_value = [
            _reservation("res-2", status=S.APPROVED, check_in=d(4), check_out=d(6))
        ]

        with pytest.raises(RoomConflictError):
            store.update_status("res-1", S.APPROVED, OPERATOR)
        repo.update_reservation_status.assert_not_called()

    def test_cancel_does_not_take_room_lock(self, store, repo):
        repo.get_reservation.return_value = _reservation()
        repo.update_reservation_status.return_value = _reservation(status=S.CANCELLED)

        store.update_status("res-1", S.CANCELLED, OWNER)
        repo.lock_room.assert_not_called()

    def test_invalid_transition(self, store, repo):
        repo.get_reservation.return_value = _reservation(status=S.CONFIRMED)
        with pytest.raises(InvalidTransitionError):
            store.update_status("res-1", S.PENDING, OPERATOR)
        repo.update_reservation_status.assert_not_called()

    def test_permission_denied(self, store, repo):
        repo.get_reservation.return_value = _reservation()
        with pytest.raises(PermissionDeniedError):
            store.update_status("res-1", S.APPROVED, OWNER)

    def test_unknown_reservation(self, store, repo):
        repo.get_reservation.return_value = None
        with pytest.raises(NotFoundError):
            store.update_status("missing", S.CANCELLED, OPERATOR)


class TestUpdatePaymentStatus:
    def test_completed_on_approved_advances_to_paid(self, store, repo, cur):
        repo.get_reservation.return_value = _reservation(status=S.APPROVED)
        repo.update_payment_status.return_value = _reservation(
            status=S.APPROVED, payment_status=PaymentStatus.COMPLETED
        )
        repo.update_reservation_status.return_value = _reservation(
            status=S.PAID, payment_status=PaymentStatus.COMPLETED
        )

        result = store.update_payment_status("res-1", PaymentStatus.COMPLETED, OWNER)

        assert result.status == S.PAID
        repo.insert_status_log.assert_called_once_with(
            cur,
            reservation_id="res-1",
            from_status=S.APPROVED,
            to_status=S.PAID,
            changed_by="user-a",
            notes="payment completed",
        )

    def test_failed_payment_keeps_status(self, store, repo):
        repo.get_reservation.return_value = _reservation(status=S.APPROVED)
        repo.update_payment_status.return_value = _reservation(
            status=S.APPROVED, payment_status=PaymentStatus.FAILED
        )

        result = store.update_payment_status("res-1", PaymentStatus.FAILED, OWNER)

        assert result.status == S.APPROVED
        repo.update_reservation_status.assert_not_called()

    @pytest.mark.parametrize("status", [S.REJECTED, S.CANCELLED, S.PAID, S.CONFIRMED])
    def test_requester_denied_once_closed(self, store, repo, status):
        repo.get_reservation.return_value = _reservation(status=status)

        with pytest.raises(PermissionDeniedError):
            store.update_payment_status("res-1", PaymentStatus.COMPLETED, OWNER)
        repo.update_payment_status.assert_not_called()

    def test_operator_may_record_on_rejected(self, store, repo):
        repo.get_reservation.return_value = _reservation(status=S.REJECTED)
        repo.update_payment_status.return_value = _reservation(
            status=S.REJECTED, payment_status=PaymentStatus.FAILED
        )

        result = store.update_payment_status("res-1", PaymentStatus.FAILED, OPERATOR)

        assert result.payment_status == PaymentStatus.FAILED
        repo.update_reservation_status.assert_not_called()


class TestAddMembers:
    def test_inserts_each_member(self, store, repo, members_repo, cur):
        repo.get_reservation.return_value = _reservation(guest_count=2)
        members_repo.count_members.return_value = 0
        members = [NewMember("Asha"), NewMember("Ravi")]

        store.add_members("res-1", members, OWNER)

        assert members_repo.insert_member.call_count == 2
        members_repo.insert_member.assert_any_call(cur, reservation_id="res-1", member=members[0])

    def test_not_pending(self, store, repo, members_repo):
        repo.get_reservation.return_value = _reservation(status=S.APPROVED)
        with pytest.raises(ReservationNotPendingError):
            store.add_members("res-1", [NewMember("Asha")], OWNER)
        members_repo.insert_member.assert_not_called()

    def test_over_guest_count(self, store, repo, members_repo):
        repo.get_reservation.return_value = _reservation(guest_count=2)
        members_repo.count_members.return_value = 2
        with pytest.raises(ValidationError):
            store.add_members("res-1", [NewMember("Asha")], OWNER)
