"""Room conflict detection over half-open date ranges.

A stay occupies [check_in, check_out): the check-out day is free for the
next guest. Two stays collide iff

    new_check_in < existing_check_out AND existing_check_in < new_check_out

Strict inequality lets check-out day == check-in day (same-day turnover).
Only active reservations (not rejected, not cancelled) block a room.

Everything here is pure; stores call it while holding their room guard.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from guesthouse.domain.errors import ConflictError, ValidationError
from guesthouse.domain.models import Reservation

logger = logging.getLogger(__name__)


class RoomConflictError(ConflictError):
    """Raised when a room has an overlapping active reservation."""

    def __init__(
        self,
        room_id: str,
        conflicting_reservation_id: str | None = None,
        existing_check_in: date | None = None,
        existing_check_out: date | None = None,
    ) -> None:
        self.room_id = room_id
        self.conflicting_reservation_id = conflicting_reservation_id
        self.existing_check_in = existing_check_in
        self.existing_check_out = existing_check_out
        if existing_check_in and existing_check_out:
            message = (
                f"Room {room_id} is not available: conflicting reservation "
                f"({existing_check_in} to {existing_check_out})"
            )
        else:
            message = f"Room {room_id} is not available for the requested dates"
        super().__init__(message)


def validate_date_range(check_in: date, check_out: date) -> None:
    """Raise ValidationError unless check_in < check_out."""
    if check_in >= check_out:
        raise ValidationError("check_in must be before check_out")


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """True iff half-open ranges [a_start, a_end) and [b_start, b_end) intersect."""
    return a_start < b_end and b_start < a_end


def find_conflict(
    reservations: Iterable[Reservation],
    *,
    check_in: date,
    check_out: date,
    exclude_reservation_id: str | None = None,
) -> Reservation | None:
    """Return the earliest active reservation overlapping the range, if any.

    Args:
        reservations: A room's reservations (any status; inactive ones are skipped).
        check_in: Requested check-in (inclusive).
        check_out: Requested check-out (exclusive).
        exclude_reservation_id: Reservation to ignore, so an approval does
            not conflict with itself.
    """
    candidates = [
        r
        for r in reservations
        if r.is_active
        and r.id != exclude_reservation_id
        and ranges_overlap(check_in, check_out, r.check_in, r.check_out)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda r: (r.check_in, r.id))


def is_available(
    reservations: Iterable[Reservation],
    *,
    check_in: date,
    check_out: date,
    exclude_reservation_id: str | None = None,
) -> bool:
    """True iff no active reservation overlaps [check_in, check_out)."""
    return (
        find_conflict(
            reservations,
            check_in=check_in,
            check_out=check_out,
            exclude_reservation_id=exclude_reservation_id,
        )
        is None
    )


def assert_no_room_conflict(
    reservations: Iterable[Reservation],
    *,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_reservation_id: str | None = None,
) -> None:
    """Raise RoomConflictError if an active reservation overlaps the range."""
    conflict = find_conflict(
        reservations,
        check_in=check_in,
        check_out=check_out,
        exclude_reservation_id=exclude_reservation_id,
    )
    if conflict is None:
        return

    # identifiers and dates only, never guest data
    logger.warning(
        "room conflict detected",
        extra={
            "extra_fields": {
                "room_id": room_id,
                "requested_check_in": check_in.isoformat(),
                "requested_check_out": check_out.isoformat(),
                "conflicting_reservation_id": conflict.id,
                "existing_check_in": conflict.check_in.isoformat(),
                "existing_check_out": conflict.check_out.isoformat(),
            },
        },
    )
    raise RoomConflictError(
        room_id=room_id,
        conflicting_reservation_id=conflict.id,
        existing_check_in=conflict.check_in,
        existing_check_out=conflict.check_out,
    )
