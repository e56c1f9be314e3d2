"""Runtime settings loaded from environment variables.

Values are read when the loader is called, never at import time, so tests
can patch os.environ freely.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

StoreBackend = Literal["postgres", "memory"]


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must be >= 0, got {value}")
    return value


@dataclass(frozen=True)
class StorageSettings:
    """Storage timeouts and retry policy.

    Attributes:
        backend: Which reservation store to build ("postgres" or "memory").
        lock_timeout_ms: Max wait for a row/room lock before giving up.
        statement_timeout_ms: Max duration of any single statement.
        retry_attempts: Total attempts the engine makes on a storage timeout.
        retry_backoff_ms: Base delay between attempts (doubled each retry).
    """

    backend: StoreBackend = "postgres"
    lock_timeout_ms: int = 2000
    statement_timeout_ms: int = 5000
    retry_attempts: int = 3
    retry_backoff_ms: int = 50


@dataclass(frozen=True)
class OIDCSettings:
    """Identity provider settings for bearer token validation."""

    issuer: str | None
    audience: str | None
    jwks_url: str | None
    authorized_parties: tuple[str, ...] = ()

    @property
    def configured(self) -> bool:
        return bool(self.issuer and self.audience and self.jwks_url)


def get_storage_settings() -> StorageSettings:
    """Load storage settings from the environment."""
    backend = os.environ.get("RESERVATION_STORE_BACKEND", "postgres").strip().lower()
    if backend not in ("postgres", "memory"):
        raise RuntimeError(f"Unknown RESERVATION_STORE_BACKEND: {backend}")

    return StorageSettings(
        backend=backend,  # type: ignore[arg-type]
        lock_timeout_ms=_int_env("DB_LOCK_TIMEOUT_MS", 2000),
        statement_timeout_ms=_int_env("DB_STATEMENT_TIMEOUT_MS", 5000),
        retry_attempts=max(1, _int_env("STORAGE_RETRY_ATTEMPTS", 3)),
        retry_backoff_ms=_int_env("STORAGE_RETRY_BACKOFF_MS", 50),
    )


def get_oidc_settings() -> OIDCSettings:
    """Load OIDC settings from the environment."""
    parties_raw = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    parties = tuple(p.strip() for p in parties_raw.split(",") if p.strip())

    return OIDCSettings(
        issuer=os.environ.get("OIDC_ISSUER"),
        audience=os.environ.get("OIDC_AUDIENCE"),
        jwks_url=os.environ.get("OIDC_JWKS_URL"),
        authorized_parties=parties,
    )
