"""Tests for time utilities."""

from datetime import date, datetime, timezone

from guesthouse.infra.time import nights_between, utc_now


class TestUtcNow:
    def test_returns_utc_datetime(self):
        assert utc_now().tzinfo == timezone.utc

    def test_returns_current_time(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= now <= after


class TestNightsBetween:
    def test_counts_nights_not_days(self):
        assert nights_between(date(2026, 3, 1), date(2026, 3, 4)) == 3

    def test_crosses_month_boundary(self):
        assert nights_between(date(2026, 2, 27), date(2026, 3, 2)) == 3
