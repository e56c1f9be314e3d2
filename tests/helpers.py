"""Shared test helper functions.

Regular functions (not fixtures): scenario ids and dates, plus signing
test JWTs against a local RSA key published as a JWKS document.
"""

from __future__ import annotations

import base64
import time
from datetime import date

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

ROOM_ID = "room-101"
OTHER_ROOM_ID = "room-102"
HOUSE_ID = "house-1"

TEST_ISSUER = "https://id.example.com"
TEST_AUDIENCE = "guesthouse-api"
TEST_JWKS_URL = "https://id.example.com/.well-known/jwks.json"


def oidc_env(**overrides: str) -> dict[str, str]:
    env = {
        "OIDC_ISSUER": TEST_ISSUER,
        "OIDC_AUDIENCE": TEST_AUDIENCE,
        "OIDC_JWKS_URL": TEST_JWKS_URL,
    }
    env.update(overrides)
    return env


def _generate_rsa_keypair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def _b64_uint(n: int) -> str:
    byte_length = (n.bit_length() + 7) // 8
    return base64.urlsafe_b64encode(n.to_bytes(byte_length, "big")).rstrip(b"=").decode()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    numbers = public_key.public_numbers()
    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": _b64_uint(numbers.n),
                "e": _b64_uint(numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = TEST_ISSUER,
    aud: str = TEST_AUDIENCE,
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if azp:
        payload["azp"] = azp

    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


def d(day: int, month: int = 3, year: int = 2026) -> date:
    """Shorthand for scenario dates."""
    return date(year, month, day)
