"""Room availability endpoint (read-only, advisory)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Path, Query

from guesthouse.api.dependencies import get_engine
from guesthouse.domain.engine import ReservationEngine

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/{room_id}/availability")
def room_availability(
    room_id: str = Path(..., description="Room UUID"),
    check_in: date = Query(...),
    check_out: date = Query(...),
    engine: ReservationEngine = Depends(get_engine),
) -> dict:
    """Whether the room is free for [check_in, check_out).

    Not binding: a later request for the same dates may still lose the race.
    """
    return {
        "room_id": room_id,
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "available": engine.is_available(room_id, check_in, check_out),
    }
