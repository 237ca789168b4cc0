"""Tests for the calendar helpers."""

from __future__ import annotations

from datetime import date

from supplan.domains.supplements.domain_logic.dates import (
    days_in_year,
    iter_days,
    month_days,
    parse_iso_date,
    week_days,
)


class TestWeekDays:
    def test_monday_to_sunday(self):
        days = week_days(date(2024, 1, 3))
        assert (days[0], days[-1]) == (date(2024, 1, 1), date(2024, 1, 7))
        assert len(days) == 7

    def test_last_representable_week_is_cut_short(self):
        days = week_days(date.max)
        assert days[0] == date(9999, 12, 27)
        assert days[-1] == date.max
        assert len(days) == 5

    def test_first_representable_week(self):
        assert week_days(date.min)[0] == date.min


class TestRanges:
    def test_iter_days_reaches_date_max(self):
        assert list(iter_days(date(9999, 12, 30), date.max)) == [date(9999, 12, 30), date.max]

    def test_month_days_leap_february(self):
        assert len(month_days(2024, 2)) == 29

    def test_days_in_year(self):
        assert (days_in_year(2024), days_in_year(2023)) == (366, 365)


def test_parse_iso_date_rejects_other_formats():
    assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
    assert parse_iso_date("01/01/2024") is None
    assert parse_iso_date("2023-02-29") is None
