"""Backend selection for the reservation store and catalog.

RESERVATION_STORE_BACKEND:
- postgres (default): PostgreSQL store and catalog, safe across processes
- memory: in-process store seeded with the default catalog (dev/tests)
"""

from __future__ import annotations

from guesthouse.infra.catalog import CatalogService, InMemoryCatalog, PostgresCatalog
from guesthouse.infra.settings import StorageSettings, get_storage_settings
from guesthouse.operations.seed_catalog import catalog_rooms

from .contracts import ReservationStore
from .memory_backend import InMemoryReservationStore
from .postgres_backend import PostgresReservationStore


def build_store(settings: StorageSettings | None = None) -> ReservationStore:
    settings = settings or get_storage_settings()
    if settings.backend == "memory":
        return InMemoryReservationStore(lock_timeout_ms=settings.lock_timeout_ms)
    return PostgresReservationStore(settings)


def build_catalog(settings: StorageSettings | None = None) -> CatalogService:
    settings = settings or get_storage_settings()
    if settings.backend == "memory":
        return InMemoryCatalog(catalog_rooms())
    return PostgresCatalog(settings)
