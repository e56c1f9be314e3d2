"""Initial schema: catalog, profiles, reservations with room-overlap exclusion.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "001_initial.sql"


def upgrade() -> None:
    # exec_driver_sql: the file contains DO $$ ... $$ blocks
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    for table in (
        "reservation_status_logs",
        "reservation_members",
        "reservations",
        "rooms",
        "guest_houses",
        "user_roles",
        "profiles",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    op.execute("DROP FUNCTION IF EXISTS touch_updated_at()")
    for enum in ("payment_status", "reservation_status", "room_type", "app_role", "user_role"):
        op.execute(f"DROP TYPE IF EXISTS {enum}")
