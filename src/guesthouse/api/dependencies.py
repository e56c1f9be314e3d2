"""Shared FastAPI dependencies: the engine singleton and the calling actor."""

from __future__ import annotations

from fastapi import Depends

from guesthouse.api.auth import CurrentUser, get_current_user
from guesthouse.domain.engine import ReservationEngine
from guesthouse.domain.models import Actor
from guesthouse.infra.settings import get_storage_settings
from guesthouse.store.factory import build_catalog, build_store

_engine: ReservationEngine | None = None


def get_engine() -> ReservationEngine:
    """Process-wide engine, built lazily from the environment (override in tests)."""
    global _engine
    if _engine is None:
        settings = get_storage_settings()
        _engine = ReservationEngine(
            build_store(settings),
            build_catalog(settings),
            retry_attempts=settings.retry_attempts,
            retry_backoff_ms=settings.retry_backoff_ms,
        )
    return _engine


def get_actor(user: CurrentUser = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, is_operator=user.is_operator)
