"""Time and calendar helpers."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def nights_between(check_in: date, check_out: date) -> int:
    """Number of nights in the half-open stay [check_in, check_out)."""
    return (check_out - check_in).days
