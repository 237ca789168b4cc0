"""Calendar-driven cycle evaluation.

A pure O(1) function of (date, CycleConfig):

    start ── initial pause (OFF) ── ON × on_days ── OFF × off_days ── ON ...

Bad or missing numbers fail open to ON so a misconfigured item is never hidden.
"""

from __future__ import annotations

import math
from datetime import date

from supplan.domains.supplements.domain_logic.dates import days_between
from supplan.domains.supplements.domain_logic.models import (
    CycleConfig,
    CycleMode,
    CycleStatus,
)


def finite_non_negative(value: object) -> bool:
    """True for real numbers >= 0 (bools, None and NaN/inf excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def pause_days(config: CycleConfig) -> int:
    """Initial pause length, 0 when unset or invalid."""
    value = config.initial_pause_days
    return int(value) if finite_non_negative(value) else 0


def has_valid_cycle(config: CycleConfig) -> bool:
    """Whether the config describes a usable ON/OFF rotation."""
    return (
        config.start_date is not None
        and finite_non_negative(config.on_days)
        and finite_non_negative(config.off_days)
    )


def calendar_status(day: date, config: CycleConfig) -> CycleStatus:
    """ON/OFF status of ``day`` under the calendar-driven model."""
    if config.mode is CycleMode.NONE or not has_valid_cycle(config):
        return CycleStatus.ON

    day_index = days_between(config.start_date, day)
    if day_index < 0:
        return CycleStatus.OFF

    pause = pause_days(config)
    if day_index < pause:
        return CycleStatus.OFF

    on_days = int(config.on_days)
    period = on_days + int(config.off_days)
    if period <= 0:
        return CycleStatus.ON

    position = (day_index - pause) % period
    return CycleStatus.ON if position < on_days else CycleStatus.OFF
