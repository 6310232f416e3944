"""Tests for time utilities"""
from datetime import datetime, timedelta, timezone

import pytest

from docflow.utils.time import (
    business_hours_between, ensure_utc, format_duration, format_iso, hours_between, parse_iso
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestIso:

    def test_format_uses_z_suffix(self):
        assert format_iso(utc(2024, 3, 4, 9, 30)) == "2024-03-04T09:30:00Z"

    def test_naive_datetime_treated_as_utc(self):
        assert format_iso(datetime(2024, 3, 4, 9, 30)) == "2024-03-04T09:30:00Z"

    def test_parse_converts_offsets(self):
        assert parse_iso("2024-03-04T11:30:00+02:00") == utc(2024, 3, 4, 9, 30)
        assert parse_iso("2024-03-04T09:30:00Z") == utc(2024, 3, 4, 9, 30)

    def test_ensure_utc(self):
        assert ensure_utc("2024-03-04T09:30:00Z") == utc(2024, 3, 4, 9, 30)
        assert ensure_utc(datetime(2024, 3, 4, 9, 30)).tzinfo is not None


class TestDurations:

    def test_hours_between(self):
        assert hours_between(utc(2024, 3, 4, 9), utc(2024, 3, 5, 10)) == 25.0

    @pytest.mark.parametrize("minutes,expected", [
        (45, "45m"),
        (60, "1h"),
        (150, "2h 30m"),
        (1500, "1d 1h"),
        (-90, "-1h 30m"),
    ])
    def test_format_duration(self, minutes, expected):
        assert format_duration(minutes) == expected


class TestBusinessHours:

    def test_within_one_day(self):
        assert business_hours_between(utc(2024, 3, 4, 10), utc(2024, 3, 4, 12)) == 2.0

    def test_outside_window_is_clipped(self):
        assert business_hours_between(utc(2024, 3, 4, 6), utc(2024, 3, 4, 20)) == 8.0

    def test_weekend_counts_nothing(self):
        assert business_hours_between(utc(2024, 3, 9, 0), utc(2024, 3, 11, 0)) == 0.0

    def test_full_week(self):
        start = utc(2024, 3, 4, 0)
        assert business_hours_between(start, start + timedelta(days=7)) == 40.0

    def test_reversed_range(self):
        assert business_hours_between(utc(2024, 3, 5), utc(2024, 3, 4)) == 0.0

    def test_local_timezone_window(self):
        # 09:00-17:00 New York is 14:00-22:00 UTC in winter
        hours = business_hours_between(utc(2024, 1, 8, 13), utc(2024, 1, 8, 15), "America/New_York")
        assert hours == 1.0

    def test_dst_transition_day(self):
        # US DST starts Sunday 2024-03-10; Monday window is 13:00-21:00 UTC
        hours = business_hours_between(utc(2024, 3, 11, 12), utc(2024, 3, 11, 14), "America/New_York")
        assert hours == 1.0
