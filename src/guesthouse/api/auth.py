"""OIDC bearer authentication - the identity provider collaborator.

Provides:
- verify_token(): validate a JWT against the issuer's JWKS, return its subject
- get_current_user(): FastAPI dependency resolving the caller's profile and
  operator capability
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import HTTPException, Request

from guesthouse.infra.settings import OIDCSettings, get_oidc_settings

# JWKS cache with TTL (module globals so tests can reset them)
_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600  # 10 minutes

_INVALID = "Invalid token"


@dataclass
class CurrentUser:
    """Authenticated caller."""

    id: str
    external_subject: str
    email: str | None
    full_name: str | None
    is_operator: bool = False


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        fresh = _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL
        if fresh and not force_refresh:
            return _jwks_cache

        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException:
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _signing_key(jwks_url: str, kid: str, *, refresh: bool = False) -> Any:
    """Public key for ``kid``; refetches the JWKS once when the kid is unknown."""
    attempts = (True,) if refresh else (False, True)
    for force in attempts:
        jwks = _get_jwks(jwks_url, force_refresh=force)
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                try:
                    return jwt.algorithms.RSAAlgorithm.from_jwk(key)
                except (ValueError, TypeError, jwt.InvalidKeyError):
                    raise HTTPException(status_code=401, detail=_INVALID)
    raise HTTPException(status_code=401, detail=_INVALID)


def _decode(token: str, key: Any, settings: OIDCSettings) -> dict[str, Any]:
    return jwt.decode(
        token,
        key,
        algorithms=["RS256"],
        issuer=settings.issuer,
        audience=settings.audience,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> str:
    """Verify a JWT and return its subject claim.

    A signature failure triggers one JWKS refresh (key rotation) before the
    token is rejected.

    Raises:
        HTTPException: 401 if the token is invalid, 503 if JWKS is unreachable.
    """
    settings = get_oidc_settings()
    if not settings.configured:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.DecodeError:
        raise HTTPException(status_code=401, detail=_INVALID)
    if not kid:
        raise HTTPException(status_code=401, detail=_INVALID)

    try:
        try:
            payload = _decode(token, _signing_key(settings.jwks_url, kid), settings)
        except jwt.InvalidSignatureError:
            payload = _decode(token, _signing_key(settings.jwks_url, kid, refresh=True), settings)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail=_INVALID)

    if settings.authorized_parties and "azp" in payload:
        if payload["azp"] not in settings.authorized_parties:
            raise HTTPException(status_code=401, detail=_INVALID)

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail=_INVALID)
    return sub


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return parts[1]


def _get_user_from_db(external_subject: str) -> CurrentUser | None:
    """Resolve a profile and whether it holds the admin app role."""
    from guesthouse.infra.db import txn

    with txn() as cur:
        cur.execute(
            """
            SELECT p.id, p.external_subject, p.email, p.full_name,
                   EXISTS (
                       SELECT 1 FROM user_roles r
                       WHERE r.user_id = p.id AND r.role = 'admin'
                   )
            FROM profiles p
            WHERE p.external_subject = %s
            """,
            (external_subject,),
        )
        row = cur.fetchone()

    if row is None:
        return None
    return CurrentUser(
        id=str(row[0]),
        external_subject=row[1],
        email=row[2],
        full_name=row[3],
        is_operator=bool(row[4]),
    )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: authenticated caller.

    Raises:
        HTTPException: 401 if the token is missing/invalid, 403 if no profile exists.
    """
    sub = verify_token(_extract_bearer_token(request))

    user = _get_user_from_db(sub)
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")
    return user
