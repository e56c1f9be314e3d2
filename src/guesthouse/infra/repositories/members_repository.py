"""Reservation members repository - occupant manifest rows.

Members are cascade-deleted with their reservation (FK ON DELETE CASCADE).
"""

from psycopg2.extensions import cursor as PgCursor

from guesthouse.domain.models import NewMember, ReservationMember

_COLUMNS = "id, reservation_id, full_name, id_proof_ref, id_proof_type, created_at"


def _row_to_member(row) -> ReservationMember:
    return ReservationMember(
        id=str(row[0]),
        reservation_id=str(row[1]),
        full_name=row[2],
        id_proof_ref=row[3],
        id_proof_type=row[4],
        created_at=row[5],
    )


def insert_member(cur: PgCursor, *, reservation_id: str, member: NewMember) -> ReservationMember:
    cur.execute(
        f"""
        INSERT INTO reservation_members (reservation_id, full_name, id_proof_ref, id_proof_type)
        VALUES (%s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (reservation_id, member.full_name, member.id_proof_ref, member.id_proof_type),
    )
    return _row_to_member(cur.fetchone())


def count_members(cur: PgCursor, reservation_id: str) -> int:
    cur.execute(
        "SELECT COUNT(*) FROM reservation_members WHERE reservation_id = %s",
        (reservation_id,),
    )
    return cur.fetchone()[0]


def list_members(cur: PgCursor, reservation_id: str) -> list[ReservationMember]:
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM reservation_members
        WHERE reservation_id = %s
        ORDER BY created_at, id
        """,
        (reservation_id,),
    )
    return [_row_to_member(row) for row in cur.fetchall()]
