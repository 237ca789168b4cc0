"""Cost Estimator — yearly consumption and cost projections per item.

Walks every day of a year through the Scheduler, sums the parsed dose of each
planned ON entry, and prices the total with the item's pack data. Unknown
price data yields an unknown cost (``None``), never zero or infinity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from supplan.domains.supplements.domain_logic.dates import days_in_year, iter_days, year_bounds
from supplan.domains.supplements.domain_logic.models import PriceConfig, UnitKind
from supplan.domains.supplements.domain_logic.scheduler import Scheduler
from supplan.domains.supplements.domain_logic.text_patterns import parse_dose_quantity

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12
MAX_SNAPSHOT_RETRIES = 3


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def yearly_cost(units: float, unit_price: Any, pack_size: Any) -> float | None:
    """``(units / pack_size) * unit_price``, or None when pricing is incomplete."""
    price = _finite(unit_price)
    pack = _finite(pack_size)
    if price is None or pack is None or pack <= 0:
        return None
    return (units / pack) * price


@dataclass
class CostRow:
    canonical_key: str
    name: str
    unit_kind: UnitKind
    yearly_units: float
    on_days: int
    unparsed_days: int
    unit_price: float | None
    pack_size: float | None
    yearly_cost: float | None
    monthly_avg: float | None
    daily_avg: float | None

    @property
    def missing_pricing(self) -> bool:
        return self.yearly_cost is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "canonical_key": self.canonical_key,
            "name": self.name,
            "unit_kind": self.unit_kind.value,
            "yearly_units": round(self.yearly_units, 4),
            "on_days": self.on_days,
            "unparsed_days": self.unparsed_days,
            "unit_price": self.unit_price,
            "pack_size": self.pack_size,
            "yearly_cost": _rounded(self.yearly_cost),
            "monthly_avg": _rounded(self.monthly_avg),
            "daily_avg": _rounded(self.daily_avg),
            "missing_pricing": self.missing_pricing,
        }


@dataclass
class CostReport:
    year: int
    days_in_year: int
    rows: list[CostRow] = field(default_factory=list)

    @property
    def total_yearly(self) -> float:
        """Sum over rows with a known cost."""
        return sum(r.yearly_cost for r in self.rows if r.yearly_cost is not None)

    @property
    def missing_count(self) -> int:
        return sum(1 for r in self.rows if r.missing_pricing)

    def to_dict(self) -> dict[str, Any]:
        total = self.total_yearly
        return {
            "year": self.year,
            "days_in_year": self.days_in_year,
            "total_yearly": round(total, 2),
            "total_monthly_avg": round(total / MONTHS_PER_YEAR, 2),
            "total_daily_avg": round(total / self.days_in_year, 4),
            "missing_pricing": self.missing_count,
            "rows": [r.to_dict() for r in self.rows],
        }


def _rounded(value: float | None) -> float | None:
    return round(value, 4) if value is not None else None


@dataclass
class _Usage:
    name: str
    unit_kind: UnitKind | None = None
    units: float = 0.0
    on_days: int = 0
    unparsed_days: int = 0


class CostEstimator:
    """Projects yearly consumption and cost for every known item.

    Usage::

        estimator = CostEstimator(store, scheduler)
        report = estimator.estimate_year(2024)
        for row in report.rows:
            print(row.name, row.yearly_cost)
    """

    def __init__(self, store, scheduler: Scheduler) -> None:
        self._store = store
        self._scheduler = scheduler

    def estimate_year(self, year: int) -> CostReport:
        """Cost report for ``year``.

        Re-runs from scratch if the store changes while the year is walked,
        so every row reflects the same state.
        """
        for _ in range(MAX_SNAPSHOT_RETRIES):
            stamp = self._store.version_stamp()
            report = self._estimate(year)
            if self._store.version_stamp() == stamp:
                return report
            logger.info("Planner state changed while estimating %d; recomputing", year)
        return self._estimate(year)

    def _estimate(self, year: int) -> CostReport:
        prices = self._store.price_configs()
        usage = self._accumulate(year, prices)
        total_days = days_in_year(year)

        rows: list[CostRow] = []
        for key, name in self._store.all_items().items():
            price = prices.get(key) or PriceConfig()
            entry = usage.get(key) or _Usage(name=name)

            units = entry.units
            override = _finite(price.daily_override_units)
            if override is not None:
                units = override * entry.on_days

            cost = yearly_cost(units, price.unit_price, price.pack_size)
            rows.append(
                CostRow(
                    canonical_key=key,
                    name=entry.name,
                    unit_kind=price.unit_kind or entry.unit_kind or UnitKind.CAPS,
                    yearly_units=units,
                    on_days=entry.on_days,
                    unparsed_days=entry.unparsed_days,
                    unit_price=_finite(price.unit_price),
                    pack_size=_finite(price.pack_size),
                    yearly_cost=cost,
                    monthly_avg=cost / MONTHS_PER_YEAR if cost is not None else None,
                    daily_avg=cost / total_days if cost is not None else None,
                )
            )

        rows.sort(
            key=lambda r: (
                r.missing_pricing,
                -(r.yearly_cost or 0.0),
                r.name.casefold(),
            )
        )
        return CostReport(year=year, days_in_year=total_days, rows=rows)

    def _accumulate(self, year: int, prices: dict[str, PriceConfig]) -> dict[str, _Usage]:
        usage: dict[str, _Usage] = {}
        first_day, last_day = year_bounds(year)

        for day in iter_days(first_day, last_day):
            seen_today: set[str] = set()
            unparsed_today: set[str] = set()
            for planned in self._scheduler.actionable_items_for(day):
                item = planned.item
                price = prices.get(item.canonical_key)
                preferred = price.unit_kind if price else None
                dose = parse_dose_quantity(item.dose_text, preferred)

                entry = usage.get(item.canonical_key)
                if entry is None:
                    entry = usage[item.canonical_key] = _Usage(name=item.item_name)
                if entry.unit_kind is None and dose.unit is not None:
                    entry.unit_kind = dose.unit
                if dose.value is not None:
                    entry.units += dose.value
                else:
                    unparsed_today.add(item.canonical_key)
                seen_today.add(item.canonical_key)

            for key in seen_today:
                usage[key].on_days += 1
            for key in unparsed_today:
                usage[key].unparsed_days += 1

        return usage
