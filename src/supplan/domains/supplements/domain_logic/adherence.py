"""Adherence-driven cycle simulation.

In adherence mode the ON phase advances only on days that actually count as
taken, so every missed day stretches the ON phase by one calendar day. The
state at any date therefore depends on the whole history since the cycle
start, and is obtained by replaying day by day:

* past days (on or before "today") count when the item was scheduled that day
  and every scheduled entry of it was completed;
* future days count whenever the item is scheduled (projection assumes
  compliance).

A replay covers one displayed calendar year and is cached per
(canonical key, year); the cache entry carries the input versions it was
computed from and is replaced whole when any of them changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Hashable, Protocol, Sequence

from supplan.domains.supplements.domain_logic.cycle_evaluator import has_valid_cycle, pause_days
from supplan.domains.supplements.domain_logic.dates import iter_days, year_bounds
from supplan.domains.supplements.domain_logic.models import (
    CycleConfig,
    CycleStatus,
    RoutineItem,
)

logger = logging.getLogger(__name__)


class AdherenceSource(Protocol):
    """What the simulator needs to know about the routine and its records."""

    def scheduled_instances(self, day: date, canonical_key: str) -> Sequence[RoutineItem]:
        """Routine entries of the item that pass the weekday/interval filters on ``day``."""
        ...

    def is_completed(self, day: date, instance_key: str) -> bool:
        """Whether the entry counts as taken on ``day`` under the completion policy."""
        ...


@dataclass(frozen=True)
class AdherenceTimeline:
    """Replayed ON/OFF statuses of one item for one calendar year."""

    canonical_key: str
    year: int
    start_date: date | None
    statuses: dict[date, CycleStatus] = field(default_factory=dict)

    @property
    def started(self) -> bool:
        """False when the cycle begins after the end of this year."""
        return self.start_date is None or self.start_date <= date(self.year, 12, 31)

    def status_on(self, day: date) -> CycleStatus:
        if self.start_date is None:
            return CycleStatus.ON
        if day < self.start_date:
            return CycleStatus.OFF
        return self.statuses.get(day, CycleStatus.ON)

    def on_days(self) -> int:
        return sum(1 for s in self.statuses.values() if s is CycleStatus.ON)


class AdherenceSimulator:
    """Replays adherence-mode cycles and memoizes one timeline per item-year.

    Usage::

        simulator = AdherenceSimulator(scheduler, today=lambda: date(2024, 3, 1))
        status = simulator.status(day, "magnesium", config, version=(3, 7, 1))
    """

    def __init__(
        self,
        source: AdherenceSource,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._source = source
        self._today = today
        self._cache: dict[tuple[str, int], tuple[Hashable, AdherenceTimeline]] = {}

    def status(
        self,
        day: date,
        canonical_key: str,
        config: CycleConfig,
        version: Hashable = None,
    ) -> CycleStatus:
        """Status of ``canonical_key`` on ``day``, replaying its year if needed."""
        return self.timeline(canonical_key, config, day.year, version).status_on(day)

    def timeline(
        self,
        canonical_key: str,
        config: CycleConfig,
        year: int,
        version: Hashable = None,
    ) -> AdherenceTimeline:
        """Cached timeline for (key, year); recomputed when ``version`` or today changes."""
        stamp = (version, self._today())
        cached = self._cache.get((canonical_key, year))
        if cached is not None and cached[0] == stamp:
            return cached[1]

        logger.debug("Replaying adherence cycle for %r in %d", canonical_key, year)
        result = self.simulate(canonical_key, config, year, today=stamp[1])
        self._cache[(canonical_key, year)] = (stamp, result)
        return result

    def simulate(
        self,
        canonical_key: str,
        config: CycleConfig,
        year: int,
        *,
        today: date | None = None,
    ) -> AdherenceTimeline:
        """Replay from the cycle start through December 31 of ``year``.

        Only the statuses that fall inside ``year`` are kept.
        """
        if not has_valid_cycle(config):
            return AdherenceTimeline(canonical_key, year, None)

        start = config.start_date
        first_day, last_day = year_bounds(year)
        if start > last_day:
            return AdherenceTimeline(canonical_key, year, start)

        on_days = int(config.on_days)
        off_days = int(config.off_days)
        if on_days + off_days <= 0:
            return AdherenceTimeline(canonical_key, year, None)

        today = today or self._today()
        statuses: dict[date, CycleStatus] = {}

        remaining_off = pause_days(config)
        phase_on = remaining_off <= 0
        on_count = 0

        for day in iter_days(start, last_day):
            if day >= first_day:
                statuses[day] = CycleStatus.ON if phase_on else CycleStatus.OFF

            if not phase_on:
                remaining_off -= 1
                if remaining_off <= 0:
                    phase_on = True
                    on_count = 0
                continue

            if self._counted(day, canonical_key, today):
                on_count += 1
            if on_count >= on_days:
                if off_days > 0:
                    phase_on = False
                    remaining_off = off_days
                else:
                    on_count = 0

        return AdherenceTimeline(canonical_key, year, start, statuses)

    def _counted(self, day: date, canonical_key: str, today: date) -> bool:
        instances = self._source.scheduled_instances(day, canonical_key)
        if not instances:
            return False
        if day > today:
            return True
        return all(self._source.is_completed(day, i.instance_key) for i in instances)
