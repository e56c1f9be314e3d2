"""Redaction helpers for safe logging.

Guest names and identity-document references must never reach the logs;
only identifiers, dates, counts and statuses are logged verbatim.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

# Context keys whose values are always dropped, whatever their type.
_SENSITIVE_KEYS = frozenset({"full_name", "name", "id_proof_ref", "id_proof_url", "email", "phone"})

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact phone and email patterns from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Render any value for safe logging."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging."""
    return {
        k: _REDACTED if k in _SENSITIVE_KEYS else redact_value(v)
        for k, v in kwargs.items()
    }
