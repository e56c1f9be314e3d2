"""Public API router: health plus every reservation-facing route."""

from fastapi import APIRouter

from guesthouse.api.routes import me, reservations, rooms

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


router.include_router(me.router)
router.include_router(reservations.router)
router.include_router(rooms.router)
