"""Reservation lifecycle state machine.

    pending ──► approved ──► paid ──► confirmed
       │            │          │          │
       ├──► rejected│          │          │
       └────────────┴──────────┴──────────┴──► cancelled

Each edge names the roles allowed to take it. A reservation's requester
acts as "requester"; identities the identity provider flags as operators
act as "operator". Anything not listed here is an invalid transition.
"""

from __future__ import annotations

from dataclasses import dataclass

from guesthouse.domain.errors import InvalidTransitionError, PermissionDeniedError
from guesthouse.domain.models import Actor, PaymentStatus, Reservation, ReservationStatus

OPERATOR = "operator"
REQUESTER = "requester"

S = ReservationStatus


@dataclass(frozen=True)
class Transition:
    source: ReservationStatus
    target: ReservationStatus
    actors: frozenset[str]
    requires_payment: bool = False
    requires_availability: bool = False


def _edge(source: S, target: S, *actors: str, **flags: bool) -> tuple[tuple[S, S], Transition]:
    return (source, target), Transition(source, target, frozenset(actors), **flags)


TRANSITIONS: dict[tuple[ReservationStatus, ReservationStatus], Transition] = dict(
    [
        _edge(S.PENDING, S.APPROVED, OPERATOR, requires_availability=True),
        _edge(S.PENDING, S.REJECTED, OPERATOR),
        _edge(S.PENDING, S.CANCELLED, REQUESTER, OPERATOR),
        _edge(S.APPROVED, S.PAID, REQUESTER, requires_payment=True),
        _edge(S.APPROVED, S.CANCELLED, REQUESTER, OPERATOR),
        _edge(S.PAID, S.CONFIRMED, OPERATOR),
        _edge(S.PAID, S.CANCELLED, OPERATOR),
        _edge(S.CONFIRMED, S.CANCELLED, OPERATOR),
    ]
)

# Statuses in which a requester may still record a payment signal.
PAYABLE_STATUSES = frozenset({S.PENDING, S.APPROVED})


def actor_roles(actor: Actor, reservation: Reservation) -> frozenset[str]:
    """Roles the actor holds with respect to this reservation."""
    roles = set()
    if actor.is_operator:
        roles.add(OPERATOR)
    if actor.id == reservation.requester_id:
        roles.add(REQUESTER)
    return frozenset(roles)


def resolve_transition(current: ReservationStatus, target: ReservationStatus) -> Transition:
    """Look up the edge current -> target.

    Raises:
        InvalidTransitionError: If the edge does not exist.
    """
    transition = TRANSITIONS.get((current, target))
    if transition is None:
        raise InvalidTransitionError(current.value, target.value)
    return transition


def check_transition(
    reservation: Reservation,
    target: ReservationStatus,
    actor: Actor,
) -> Transition:
    """Validate that ``actor`` may move ``reservation`` to ``target``.

    Checks run in a fixed order: the edge must exist, the actor must hold
    one of the edge's roles, then the edge's payment precondition must hold.
    The availability precondition of an approval is left to the store,
    which evaluates it under the room guard.

    Raises:
        InvalidTransitionError: Unknown edge or unmet payment precondition.
        PermissionDeniedError: Actor lacks the required role.
    """
    transition = resolve_transition(reservation.status, target)

    roles = require_access(actor, reservation)
    if not roles & transition.actors:
        allowed = " or ".join(sorted(transition.actors))
        raise PermissionDeniedError(
            f"Transition {reservation.status.value} -> {target.value} requires {allowed}"
        )

    if transition.requires_payment and reservation.payment_status != PaymentStatus.COMPLETED:
        raise InvalidTransitionError(
            reservation.status.value, target.value, "payment not completed"
        )

    return transition


def require_access(actor: Actor, reservation: Reservation) -> frozenset[str]:
    """Roles the actor holds; raises PermissionDeniedError if none.

    Requesters reach only their own reservations; operators reach all.
    """
    roles = actor_roles(actor, reservation)
    if not roles:
        raise PermissionDeniedError(f"Actor has no access to reservation {reservation.id}")
    return roles


def require_payment_access(actor: Actor, reservation: Reservation) -> frozenset[str]:
    """Roles the actor holds, if it may record a payment on this reservation.

    Operators may record payments in any status; a requester only while the
    reservation is pending or approved.

    Raises:
        PermissionDeniedError: No access, or a requester on a closed reservation.
    """
    roles = require_access(actor, reservation)
    if OPERATOR not in roles and reservation.status not in PAYABLE_STATUSES:
        raise PermissionDeniedError(
            f"Payment cannot be recorded on a {reservation.status.value} reservation"
        )
    return roles
