"""Tests for the calendar-driven cycle evaluator."""

from __future__ import annotations

import math
from datetime import date, timedelta

import pytest

from supplan.domains.supplements.domain_logic.cycle_evaluator import (
    calendar_status,
    finite_non_negative,
    has_valid_cycle,
)
from supplan.domains.supplements.domain_logic.models import CycleConfig, CycleMode, CycleStatus

ON = CycleStatus.ON
OFF = CycleStatus.OFF


def calendar(start=date(2024, 1, 1), on=10, off=5, pause=0) -> CycleConfig:
    return CycleConfig(
        mode=CycleMode.CALENDAR,
        start_date=start,
        on_days=on,
        off_days=off,
        initial_pause_days=pause,
    )


def _days(start: date, count: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(count)]


class TestTenOnFiveOff:
    def test_first_on_phase(self):
        config = calendar()
        assert all(calendar_status(d, config) is ON for d in _days(date(2024, 1, 1), 10))

    def test_off_phase(self):
        config = calendar()
        assert all(calendar_status(d, config) is OFF for d in _days(date(2024, 1, 11), 5))

    def test_back_on(self):
        assert calendar_status(date(2024, 1, 16), calendar()) is ON


class TestPeriodicity:
    @pytest.mark.parametrize("on, off, pause", [(10, 5, 0), (3, 4, 2), (56, 14, 7), (1, 1, 0)])
    def test_status_repeats_every_period(self, on, off, pause):
        config = calendar(on=on, off=off, pause=pause)
        period = on + off
        first = date(2024, 1, 1) + timedelta(days=pause)
        for day in _days(first, 3 * period):
            assert calendar_status(day, config) is calendar_status(day + timedelta(days=period), config)

    def test_deterministic(self):
        config = calendar()
        day = date(2024, 7, 19)
        assert calendar_status(day, config) is calendar_status(day, config)


class TestBeforeStartAndPause:
    def test_pre_start_is_off(self):
        config = calendar(start=date(2024, 6, 1))
        for day in (date(2024, 5, 31), date(2023, 1, 1), date(2000, 2, 29)):
            assert calendar_status(day, config) is OFF

    def test_initial_pause_precedes_first_on(self):
        config = calendar(on=3, off=2, pause=4)
        statuses = [calendar_status(d, config) for d in _days(date(2024, 1, 1), 10)]
        assert statuses == [OFF] * 4 + [ON] * 3 + [OFF] * 2 + [ON]

    def test_zero_off_is_always_on_after_start(self):
        config = calendar(on=5, off=0)
        assert all(calendar_status(d, config) is ON for d in _days(date(2024, 1, 1), 40))


class TestFailOpen:
    def test_mode_none(self):
        config = CycleConfig(mode=CycleMode.NONE, start_date=date(2030, 1, 1), on_days=1, off_days=9)
        assert calendar_status(date(2024, 1, 1), config) is ON

    def test_missing_start_date(self):
        config = calendar(start=None)
        assert calendar_status(date(2024, 1, 1), config) is ON

    @pytest.mark.parametrize("bad", [None, -1, math.nan, math.inf, "10", True])
    def test_bad_on_days(self, bad):
        config = calendar(on=bad)
        assert calendar_status(date(2024, 1, 12), config) is ON

    @pytest.mark.parametrize("bad", [None, -3, math.nan])
    def test_bad_off_days(self, bad):
        config = calendar(off=bad)
        assert calendar_status(date(2024, 1, 12), config) is ON

    def test_zero_period(self):
        config = calendar(on=0, off=0)
        assert calendar_status(date(2024, 3, 3), config) is ON

    def test_bad_pause_is_treated_as_zero(self):
        config = calendar(pause=math.nan)
        assert calendar_status(date(2024, 1, 1), config) is ON


class TestValidation:
    @pytest.mark.parametrize("value, expected", [(0, True), (2.5, True), (-1, False), (math.nan, False), (None, False), (False, False)])
    def test_finite_non_negative(self, value, expected):
        assert finite_non_negative(value) is expected

    def test_has_valid_cycle(self):
        assert has_valid_cycle(calendar())
        assert not has_valid_cycle(calendar(start=None))
