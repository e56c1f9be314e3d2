"""DATABASE_URL normalization for Alembic.

Kept apart from env.py so it can be tested without an Alembic context.
The application connects with psycopg2 directly and accepts either a URL
or a libpq ``key=value`` DSN; Alembic needs a SQLAlchemy URL, so both forms
are converted here.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url

_DRIVER = "postgresql+psycopg2"


def _libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq key=value DSN to a SQLAlchemy URL string.

    A host starting with "/" is a unix socket directory and is passed as
    the ``host`` query parameter.
    """
    params = parse_dsn(dsn)

    password = params.get("password") or os.environ.get("DB_PASSWORD") or None
    host = params.get("host", "localhost")
    port = int(params.get("port", 5432))

    if host.startswith("/"):
        url = URL.create(
            _DRIVER,
            username=params.get("user"),
            password=password,
            database=params.get("dbname"),
            query={"host": host},
        )
    else:
        url = URL.create(
            _DRIVER,
            username=params.get("user"),
            password=password,
            host=host,
            port=port,
            database=params.get("dbname"),
        )
    return url.render_as_string(hide_password=False)


def _get_database_url() -> str:
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")

    if "://" not in raw:
        return _libpq_dsn_to_url(raw)

    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]
    url = make_url(raw)
    if url.drivername == "postgresql":
        url = url.set(drivername=_DRIVER)

    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not url.password:
        url = url.set(password=db_password)

    return url.render_as_string(hide_password=False)
