"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for short, bounded transactions
- storage_errors(): Translate timeouts and lost connections to StorageTimeoutError
- fetchone/fetchall: Query helpers
- is_uuid(): Guard for UUID primary key lookups
"""

import os
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

from guesthouse.domain.errors import StorageTimeoutError
from guesthouse.observability.logging import get_logger
from guesthouse.observability.redaction import safe_log_context

logger = get_logger(__name__)


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    DB_PASSWORD is passed separately when the DSN carries no password
    (secret-manager deployments keep it out of the URL).

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    password = os.environ.get("DB_PASSWORD")
    if password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(
    conn: PgConnection | None = None,
    *,
    lock_timeout_ms: int | None = None,
    statement_timeout_ms: int | None = None,
) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Timeouts are applied with SET LOCAL so they expire with the transaction:
    a blocked lock raises psycopg2.errors.LockNotAvailable, a slow statement
    raises psycopg2.errors.QueryCanceled.

    Example:
        with txn(lock_timeout_ms=2000) as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            if lock_timeout_ms is not None:
                cur.execute("SELECT set_config('lock_timeout', %s, true)", (f"{int(lock_timeout_ms)}ms",))
            if statement_timeout_ms is not None:
                cur.execute(
                    "SELECT set_config('statement_timeout', %s, true)",
                    (f"{int(statement_timeout_ms)}ms",),
                )
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Map lock/statement timeouts and lost connections to StorageTimeoutError.

    Wrap a txn() block with it so callers see one retryable error type.
    """
    try:
        yield
    except (pg_errors.LockNotAvailable, pg_errors.QueryCanceled) as exc:
        logger.warning(
            "storage timeout",
            extra={"extra_fields": safe_log_context(operation=operation, pgcode=exc.pgcode)},
        )
        raise StorageTimeoutError(f"{operation} timed out waiting for storage") from exc
    except psycopg2.OperationalError as exc:
        logger.warning(
            "storage unavailable",
            extra={"extra_fields": safe_log_context(operation=operation)},
        )
        raise StorageTimeoutError(f"{operation}: storage unavailable") from exc


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()


def is_uuid(value: str) -> bool:
    """True if value parses as a UUID (keys are UUID columns; anything else cannot match)."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True
