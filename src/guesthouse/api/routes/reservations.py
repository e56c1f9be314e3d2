"""Reservation endpoints.

POST   /reservations                      request a reservation (pending)
GET    /reservations                      own reservations; operators may pass room_id
GET    /reservations/{id}                 one reservation (owner or operator)
PATCH  /reservations/{id}/status          lifecycle transition
POST   /reservations/{id}/payment         payment signal
POST   /reservations/{id}/members         attach occupants (pending only)
GET    /reservations/{id}/members
GET    /reservations/{id}/history         status audit trail

Domain errors propagate to the handler in guesthouse.api.errors.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from guesthouse.api.dependencies import get_actor, get_engine
from guesthouse.domain.engine import ReservationEngine
from guesthouse.domain.models import (
    Actor,
    NewMember,
    PaymentStatus,
    ReservationMember,
    ReservationStatus,
)

router = APIRouter(prefix="/reservations", tags=["reservations"])


class MemberIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    id_proof_ref: str | None = Field(None, description="Opaque evidence-store reference")
    id_proof_type: str | None = None

    def to_domain(self) -> NewMember:
        return NewMember(
            full_name=self.full_name.strip(),
            id_proof_ref=self.id_proof_ref,
            id_proof_type=self.id_proof_type,
        )


class CreateReservationRequest(BaseModel):
    room_id: str
    check_in: date
    check_out: date
    guest_count: int = Field(..., ge=1)
    members: list[MemberIn] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    target_status: ReservationStatus
    notes: str | None = Field(None, max_length=2000)


class PaymentRequest(BaseModel):
    payment_status: PaymentStatus


class AddMembersRequest(BaseModel):
    members: list[MemberIn] = Field(..., min_length=1)


def _member_dict(member: ReservationMember) -> dict:
    return {
        "id": member.id,
        "reservation_id": member.reservation_id,
        "full_name": member.full_name,
        "id_proof_ref": member.id_proof_ref,
        "id_proof_type": member.id_proof_type,
        "created_at": member.created_at.isoformat(),
    }


@router.post("", status_code=201)
def request_reservation(
    body: CreateReservationRequest,
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    """Request a room for [check_in, check_out). 409 if the dates are taken."""
    reservation = engine.request_reservation(
        requester_id=actor.id,
        room_id=body.room_id,
        check_in=body.check_in,
        check_out=body.check_out,
        guest_count=body.guest_count,
        members=[m.to_domain() for m in body.members],
    )
    return reservation.to_dict()


@router.get("")
def list_reservations(
    room_id: str | None = Query(None, description="Operators only: list a room's reservations"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    reservations = engine.list_reservations(actor, room_id=room_id)
    return {"reservations": [r.to_dict() for r in reservations]}


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    return engine.get_reservation(reservation_id, actor).to_dict()


@router.patch("/{reservation_id}/status")
def transition_status(
    body: StatusUpdateRequest,
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    """Apply a lifecycle transition. 409 invalid transition, 404 unknown, 403 not allowed."""
    reservation = engine.transition_status(
        reservation_id, actor, body.target_status, notes=body.notes
    )
    return reservation.to_dict()


@router.post("/{reservation_id}/payment")
def record_payment(
    body: PaymentRequest,
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    return engine.record_payment(reservation_id, actor, body.payment_status).to_dict()


@router.post("/{reservation_id}/members", status_code=201)
def add_members(
    body: AddMembersRequest,
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    members = engine.add_members(reservation_id, actor, [m.to_domain() for m in body.members])
    return {"members": [_member_dict(m) for m in members]}


@router.get("/{reservation_id}/members")
def list_members(
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    members = engine.list_members(reservation_id, actor)
    return {"members": [_member_dict(m) for m in members]}


@router.get("/{reservation_id}/history")
def status_history(
    reservation_id: str = Path(..., description="Reservation UUID"),
    actor: Actor = Depends(get_actor),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    history = engine.status_history(reservation_id, actor)
    return {"history": [h.to_dict() for h in history]}
