"""Catalog collaborator: read-only room metadata.

The engine only needs occupancy limit, price and owning guest house.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Protocol

from guesthouse.domain.models import MAX_GUESTS_PER_ROOM, Room, RoomType

from .db import fetchone, is_uuid, storage_errors, txn
from .settings import StorageSettings, get_storage_settings


class CatalogService(Protocol):
    def get_room(self, room_id: str) -> Room | None:
        """Return the room, or None if it does not exist."""
        ...


class PostgresCatalog:
    """Reads rooms from the catalog tables, bounded like every store call."""

    def __init__(self, settings: StorageSettings | None = None) -> None:
        self._settings = settings or get_storage_settings()

    def get_room(self, room_id: str) -> Room | None:
        if not is_uuid(room_id):
            return None
        with storage_errors("get_room"), txn(
            lock_timeout_ms=self._settings.lock_timeout_ms,
            statement_timeout_ms=self._settings.statement_timeout_ms,
        ) as cur:
            row = fetchone(
                cur,
                """
                SELECT id, guest_house_id, price_per_person, max_occupancy, room_number, type
                FROM rooms
                WHERE id = %s
                """,
                (room_id,),
            )
        if row is None:
            return None
        return Room(
            id=str(row[0]),
            guest_house_id=str(row[1]),
            price_per_person=Decimal(row[2]),
            max_occupancy=min(row[3] or MAX_GUESTS_PER_ROOM, MAX_GUESTS_PER_ROOM),
            room_number=row[4],
            type=RoomType(row[5]) if row[5] else None,
        )


class InMemoryCatalog:
    """Fixed set of rooms, for the memory backend and tests."""

    def __init__(self, rooms: Iterable[Room] = ()) -> None:
        self._rooms = {room.id: room for room in rooms}

    def add(self, room: Room) -> None:
        self._rooms[room.id] = room

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)
