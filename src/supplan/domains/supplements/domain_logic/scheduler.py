"""Scheduler — which routine entries apply on a date, and in which state.

An entry is *planned* on a date when its free text allows that weekday and
its repeat interval lands on that date. A planned entry is *actionable* when
its item's cycle is ON; OFF entries can still be listed (the "show OFF"
toggle) but never count toward completion ratios.

Cycle status is resolved per item mode:

* ``none``      -> always ON
* ``calendar``  -> :func:`calendar_status`
* ``adherence`` -> :class:`AdherenceSimulator` (replayed and cached per year)
"""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from typing import Callable

from supplan.domains.supplements.domain_logic.adherence import AdherenceSimulator
from supplan.domains.supplements.domain_logic.cycle_evaluator import calendar_status
from supplan.domains.supplements.domain_logic.dates import (
    days_between,
    iso_weekday,
    month_days,
    week_days,
)
from supplan.domains.supplements.domain_logic.models import (
    CycleMode,
    CycleStatus,
    DayCompletion,
    PeriodCompletion,
    PlannedItem,
    RoutineItem,
)
from supplan.domains.supplements.domain_logic.text_patterns import (
    extract_interval_days,
    extract_weekdays,
)
from supplan.domains.supplements.store import PlannerStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4096)
def item_rules(item: RoutineItem) -> tuple[frozenset[int] | None, int | None]:
    """(weekday set, interval > 1) parsed once per routine entry."""
    weekdays = extract_weekdays(*item.texts())
    interval = extract_interval_days(*item.texts())
    return (
        frozenset(weekdays) if weekdays else None,
        interval if interval is not None and interval > 1 else None,
    )


class Scheduler:
    """Resolves routine entries against dates using the planner store.

    Usage::

        scheduler = Scheduler(store, today=lambda: date(2024, 3, 1))
        for planned in scheduler.planned_items_for(date(2024, 3, 1)):
            print(planned.item.item_name, planned.status.value)
        scheduler.completion_for(date(2024, 3, 1)).ratio
    """

    def __init__(
        self,
        store: PlannerStore,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._today = today
        self._simulator = AdherenceSimulator(self, today=today)

    @property
    def store(self) -> PlannerStore:
        return self._store

    @property
    def simulator(self) -> AdherenceSimulator:
        return self._simulator

    def today(self) -> date:
        return self._today()

    # ------------------------------------------------------------------
    # Per-entry decisions
    # ------------------------------------------------------------------

    def interval_anchor(self, item: RoutineItem) -> date | None:
        """Day zero for "every N days": item anchor, else cycle start, else import date."""
        config = self._store.cycle_config(item.canonical_key)
        if config is not None:
            if config.interval_anchor_date is not None:
                return config.interval_anchor_date
            if config.start_date is not None:
                return config.start_date
        return self._store.routine_loaded_on

    def is_scheduled(self, day: date, item: RoutineItem) -> bool:
        """Weekday and interval filters only; cycle status is not consulted."""
        weekdays, interval = item_rules(item)
        if weekdays is not None and iso_weekday(day) not in weekdays:
            return False
        if interval is not None:
            anchor = self.interval_anchor(item)
            if anchor is None:
                return True
            offset = days_between(anchor, day)
            return offset >= 0 and offset % interval == 0
        return True

    def status_of(self, day: date, item: RoutineItem) -> CycleStatus:
        return self.status_for_key(day, item.canonical_key)

    def status_for_key(self, day: date, canonical_key: str) -> CycleStatus:
        config = self._store.cycle_config(canonical_key)
        if config is None or config.mode is CycleMode.NONE:
            return CycleStatus.ON
        if config.mode is CycleMode.CALENDAR:
            return calendar_status(day, config)
        return self._simulator.status(
            day, canonical_key, config, version=self._adherence_version(canonical_key)
        )

    def _adherence_version(self, canonical_key: str) -> tuple[int, int, int]:
        return (
            self._store.config_version(canonical_key),
            self._store.records_version,
            self._store.routine_version,
        )

    # ------------------------------------------------------------------
    # AdherenceSource
    # ------------------------------------------------------------------

    def scheduled_instances(self, day: date, canonical_key: str) -> list[RoutineItem]:
        return [
            item
            for item in self._store.routine_for(day)
            if item.canonical_key == canonical_key and self.is_scheduled(day, item)
        ]

    def is_completed(self, day: date, instance_key: str) -> bool:
        return self._store.is_completed(day, instance_key)

    # ------------------------------------------------------------------
    # Day views
    # ------------------------------------------------------------------

    def planned_items_for(
        self,
        day: date,
        *,
        include_off: bool | None = None,
    ) -> list[PlannedItem]:
        """Planned entries for ``day`` sorted by moment rank, then item name.

        OFF entries are included only when ``include_off`` (default: the
        store's show-OFF toggle) is set.
        """
        if include_off is None:
            include_off = self._store.show_off

        planned: list[PlannedItem] = []
        for item in self._store.routine_for(day):
            if not self.is_scheduled(day, item):
                continue
            status = self.status_of(day, item)
            if status is CycleStatus.OFF and not include_off:
                continue
            planned.append(
                PlannedItem(item, status, self._store.is_completed(day, item.instance_key))
            )

        planned.sort(
            key=lambda p: (p.item.sort_key, p.item.item_name.casefold(), p.item.instance_key)
        )
        return planned

    def actionable_items_for(self, day: date) -> list[PlannedItem]:
        """Planned entries whose cycle is ON."""
        return self.planned_items_for(day, include_off=False)

    def grouped_by_moment(self, day: date) -> list[tuple[str, list[PlannedItem]]]:
        groups: dict[str, list[PlannedItem]] = {}
        for planned in self.planned_items_for(day):
            groups.setdefault(planned.item.moment, []).append(planned)
        return list(groups.items())

    # ------------------------------------------------------------------
    # Completion ratios
    # ------------------------------------------------------------------

    def completion_for(self, day: date) -> DayCompletion:
        actionable = self.actionable_items_for(day)
        return DayCompletion(
            day=day,
            planned_count=len(actionable),
            completed_count=sum(1 for p in actionable if p.completed),
        )

    def week_completion(self, day: date) -> PeriodCompletion:
        """Monday-to-Sunday week containing ``day``."""
        return PeriodCompletion([self.completion_for(d) for d in week_days(day)])

    def month_completion(self, year: int, month: int) -> PeriodCompletion:
        return PeriodCompletion([self.completion_for(d) for d in month_days(year, month)])

    # ------------------------------------------------------------------
    # Marking
    # ------------------------------------------------------------------

    def mark_item(self, day: date, instance_key: str, completed: bool = True) -> None:
        self._store.set_completed(day, instance_key, completed)

    def mark_all(self, day: date) -> list[str]:
        """Mark every actionable entry of ``day`` completed; returns their keys."""
        keys = [p.item.instance_key for p in self.actionable_items_for(day)]
        if keys:
            self._store.set_many_completed(day, keys, True)
            logger.info("Marked %d entries completed on %s", len(keys), day.isoformat())
        return keys

    def clear_day(self, day: date) -> None:
        self._store.clear_day(day)
