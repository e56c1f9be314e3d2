"""Reservation domain types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RoomType(str, Enum):
    AC = "ac"
    NON_AC = "non_ac"


# Reservations in these statuses never block a room.
INACTIVE_STATUSES = frozenset({ReservationStatus.REJECTED, ReservationStatus.CANCELLED})

MAX_GUESTS_PER_ROOM = 2


@dataclass(frozen=True)
class Room:
    """Catalog view of a room, as the engine needs it."""

    id: str
    guest_house_id: str
    price_per_person: Decimal
    max_occupancy: int = MAX_GUESTS_PER_ROOM
    room_number: str | None = None
    type: RoomType | None = None


@dataclass(frozen=True)
class Actor:
    """Identity performing an action. ``is_operator`` comes from the identity provider."""

    id: str
    is_operator: bool = False


@dataclass(frozen=True)
class NewMember:
    """Occupant details supplied by the requester."""

    full_name: str
    id_proof_ref: str | None = None
    id_proof_type: str | None = None


@dataclass(frozen=True)
class ReservationMember:
    id: str
    reservation_id: str
    full_name: str
    id_proof_ref: str | None
    id_proof_type: str | None
    created_at: datetime


@dataclass(frozen=True)
class NewReservation:
    """Fully priced candidate handed to a store for atomic creation."""

    requester_id: str
    room_id: str
    guest_house_id: str
    check_in: date
    check_out: date
    guest_count: int
    total_amount: Decimal


@dataclass
class Reservation:
    id: str
    requester_id: str
    room_id: str
    guest_house_id: str
    check_in: date
    check_out: date
    guest_count: int
    total_amount: Decimal
    status: ReservationStatus = ReservationStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    operator_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def to_dict(self) -> dict:
        return {
            "reservation_id": self.id,
            "requester_id": self.requester_id,
            "room_id": self.room_id,
            "guest_house_id": self.guest_house_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "guest_count": self.guest_count,
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "operator_notes": self.operator_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class StatusChange:
    """One row of a reservation's status audit trail."""

    reservation_id: str
    from_status: ReservationStatus | None
    to_status: ReservationStatus
    changed_by: str
    notes: str | None
    changed_at: datetime

    def to_dict(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "changed_by": self.changed_by,
            "notes": self.notes,
            "changed_at": self.changed_at.isoformat(),
        }
