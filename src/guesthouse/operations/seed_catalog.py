"""Seed the catalog: three guest houses with ten rooms each.

Even-numbered rooms are air-conditioned and priced higher. Room ids are
derived with uuid5 from the room number, so reseeding is idempotent and the
in-memory catalog uses the same ids as the database.

Usage:
    DATABASE_URL=... SEED_OPERATOR_SUBJECT=<oidc sub> python -m guesthouse.operations.seed_catalog
"""

import os
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal

import psycopg2

from guesthouse.domain.models import Room, RoomType

_NAMESPACE = uuid.UUID("7f6f2b8e-5d1c-4c1e-9b57-2f3c4d5e6a70")
ROOMS_PER_HOUSE = 10


@dataclass(frozen=True)
class GuestHouseSeed:
    name: str
    description: str
    is_female_only: bool
    prefix: str
    ac_price: Decimal
    non_ac_price: Decimal

    @property
    def id(self) -> str:
        return str(uuid.uuid5(_NAMESPACE, f"guest-house:{self.prefix}"))


GUEST_HOUSES = (
    GuestHouseSeed(
        "Anandi Bai Joshi Guest House",
        "Exclusively for female guests with comfortable accommodations",
        True,
        "ABJ",
        Decimal("600.00"),
        Decimal("400.00"),
    ),
    GuestHouseSeed(
        "Main Guest House",
        "Premium guest house with modern amenities",
        False,
        "MGH",
        Decimal("1600.00"),
        Decimal("1200.00"),
    ),
    GuestHouseSeed(
        "Ramanujan Guest House",
        "Standard guest house with essential facilities",
        False,
        "RGH",
        Decimal("600.00"),
        Decimal("400.00"),
    ),
)


def catalog_rooms() -> list[Room]:
    rooms = []
    for house in GUEST_HOUSES:
        for n in range(1, ROOMS_PER_HOUSE + 1):
            is_ac = n % 2 == 0
            number = f"{house.prefix}-{n}-{'AC' if is_ac else 'NAC'}"
            rooms.append(
                Room(
                    id=str(uuid.uuid5(_NAMESPACE, f"room:{number}")),
                    guest_house_id=house.id,
                    price_per_person=house.ac_price if is_ac else house.non_ac_price,
                    room_number=number,
                    type=RoomType.AC if is_ac else RoomType.NON_AC,
                )
            )
    return rooms


def main() -> int:
    dsn = os.getenv("DATABASE_URL", "").strip()
    if not dsn:
        raise RuntimeError("Missing env var: DATABASE_URL")
    operator_subject = os.getenv("SEED_OPERATOR_SUBJECT", "").strip()

    with psycopg2.connect(dsn) as conn:
        with conn.cursor() as cur:
            for house in GUEST_HOUSES:
                cur.execute(
                    """
                    INSERT INTO guest_houses (id, name, description, is_female_only)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (house.id, house.name, house.description, house.is_female_only),
                )
            for room in catalog_rooms():
                cur.execute(
                    """
                    INSERT INTO rooms (id, guest_house_id, room_number, type, price_per_person, max_occupancy)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (
                        room.id,
                        room.guest_house_id,
                        room.room_number,
                        room.type.value,
                        room.price_per_person,
                        room.max_occupancy,
                    ),
                )

            if operator_subject:
                cur.execute(
                    """
                    INSERT INTO user_roles (user_id, role)
                    SELECT id, 'admin' FROM profiles WHERE external_subject = %s
                    ON CONFLICT (user_id, role) DO NOTHING
                    """,
                    (operator_subject,),
                )

    print(f"seeded {len(GUEST_HOUSES)} guest houses, {len(catalog_rooms())} rooms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
