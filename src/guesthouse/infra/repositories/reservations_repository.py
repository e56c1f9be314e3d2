"""Reservations repository - persistence for reservations and their status log.

Uses raw SQL with psycopg2 (no ORM). Every function takes a cursor and runs
inside the caller's transaction.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from guesthouse.domain.models import (
    INACTIVE_STATUSES,
    NewReservation,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    StatusChange,
)
from guesthouse.infra.db import is_uuid

_COLUMNS = """
    id, requester_id, room_id, guest_house_id, check_in_date, check_out_date,
    guest_count, total_amount, status, payment_status, operator_notes,
    created_at, updated_at
"""

_INACTIVE = [s.value for s in sorted(INACTIVE_STATUSES, key=lambda s: s.value)]


def _row_to_reservation(row: tuple[Any, ...]) -> Reservation:
    return Reservation(
        id=str(row[0]),
        requester_id=str(row[1]),
        room_id=str(row[2]),
        guest_house_id=str(row[3]),
        check_in=row[4],
        check_out=row[5],
        guest_count=row[6],
        total_amount=row[7],
        status=ReservationStatus(row[8]),
        payment_status=PaymentStatus(row[9]),
        operator_notes=row[10],
        created_at=row[11],
        updated_at=row[12],
    )


def get_reservation(
    cur: PgCursor,
    reservation_id: str,
    *,
    for_update: bool = False,
) -> Reservation | None:
    """Fetch one reservation, optionally locking its row until commit."""
    if not is_uuid(reservation_id):
        return None
    suffix = " FOR UPDATE" if for_update else ""
    cur.execute(
        f"SELECT {_COLUMNS} FROM reservations WHERE id = %s{suffix}",
        (reservation_id,),
    )
    row = cur.fetchone()
    return _row_to_reservation(row) if row is not None else None


def list_reservations_by_room(
    cur: PgCursor,
    room_id: str,
    *,
    active_only: bool = True,
    overlapping: tuple[date, date] | None = None,
) -> list[Reservation]:
    """List a room's reservations ordered by check-in.

    Args:
        cur: Database cursor.
        room_id: Room identifier.
        active_only: Skip rejected and cancelled reservations.
        overlapping: Optional (check_in, check_out) range; only reservations
            intersecting [check_in, check_out) are returned.
    """
    if not is_uuid(room_id):
        return []

    conditions = ["room_id = %s"]
    params: list = [room_id]

    if active_only:
        conditions.append("status <> ALL(%s::reservation_status[])")
        params.append(_INACTIVE)

    if overlapping is not None:
        check_in, check_out = overlapping
        conditions.append("check_in_date < %s")   # existing check-in < new check-out
        conditions.append("check_out_date > %s")  # existing check-out > new check-in
        params.extend([check_out, check_in])

    where = " AND ".join(conditions)
    cur.execute(
        f"SELECT {_COLUMNS} FROM reservations WHERE {where} ORDER BY check_in_date, id",
        params,
    )
    return [_row_to_reservation(row) for row in cur.fetchall()]


def list_reservations_by_requester(cur: PgCursor, requester_id: str) -> list[Reservation]:
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM reservations
        WHERE requester_id = %s
        ORDER BY check_in_date DESC, id
        """,
        (requester_id,),
    )
    return [_row_to_reservation(row) for row in cur.fetchall()]


def insert_reservation(cur: PgCursor, candidate: NewReservation) -> Reservation:
    """Insert a pending reservation.

    The no_room_overlap exclusion constraint rejects the row with
    psycopg2.errors.ExclusionViolation if an active reservation for the
    same room overlaps it, including one committed concurrently.
    """
    cur.execute(
        f"""
        INSERT INTO reservations (
            requester_id, room_id, guest_house_id,
            check_in_date, check_out_date, guest_count, total_amount,
            status, payment_status
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, 'pending', 'pending')
        RETURNING {_COLUMNS}
        """,
        (
            candidate.requester_id,
            candidate.room_id,
            candidate.guest_house_id,
            candidate.check_in,
            candidate.check_out,
            candidate.guest_count,
            candidate.total_amount,
        ),
    )
    return _row_to_reservation(cur.fetchone())


def update_reservation_status(
    cur: PgCursor,
    *,
    reservation_id: str,
    from_status: ReservationStatus,
    to_status: ReservationStatus,
    notes: str | None = None,
) -> Reservation | None:
    """Move a reservation from one status to another.

    Guarded by ``status = from_status``; returns None when the row was
    changed underneath the caller. Existing operator notes are kept when
    ``notes`` is None.
    """
    cur.execute(
        f"""
        UPDATE reservations
        SET status = %s::reservation_status,
            operator_notes = COALESCE(%s, operator_notes),
            updated_at = now()
        WHERE id = %s AND status = %s::reservation_status
        RETURNING {_COLUMNS}
        """,
        (to_status.value, notes, reservation_id, from_status.value),
    )
    row = cur.fetchone()
    return _row_to_reservation(row) if row is not None else None


def update_payment_status(
    cur: PgCursor,
    *,
    reservation_id: str,
    payment_status: PaymentStatus,
) -> Reservation | None:
    cur.execute(
        f"""
        UPDATE reservations
        SET payment_status = %s::payment_status, updated_at = now()
        WHERE id = %s
        RETURNING {_COLUMNS}
        """,
        (payment_status.value, reservation_id),
    )
    row = cur.fetchone()
    return _row_to_reservation(row) if row is not None else None


def lock_room(cur: PgCursor, room_id: str) -> bool:
    """Take the per-room approval guard. Returns False if the room is unknown."""
    cur.execute("SELECT id FROM rooms WHERE id = %s FOR UPDATE", (room_id,))
    return cur.fetchone() is not None


def insert_status_log(
    cur: PgCursor,
    *,
    reservation_id: str,
    from_status: ReservationStatus | None,
    to_status: ReservationStatus,
    changed_by: str,
    notes: str | None = None,
) -> None:
    cur.execute(
        """
        INSERT INTO reservation_status_logs
            (reservation_id, from_status, to_status, changed_by, notes)
        VALUES (%s, %s, %s, %s, %s)
        """,
        (
            reservation_id,
            from_status.value if from_status else None,
            to_status.value,
            changed_by,
            notes,
        ),
    )


def list_status_logs(cur: PgCursor, reservation_id: str) -> list[StatusChange]:
    cur.execute(
        """
        SELECT reservation_id, from_status, to_status, changed_by, notes, changed_at
        FROM reservation_status_logs
        WHERE reservation_id = %s
        ORDER BY changed_at, id
        """,
        (reservation_id,),
    )
    return [
        StatusChange(
            reservation_id=str(row[0]),
            from_status=ReservationStatus(row[1]) if row[1] else None,
            to_status=ReservationStatus(row[2]),
            changed_by=str(row[3]),
            notes=row[4],
            changed_at=row[5],
        )
        for row in cur.fetchall()
    ]
