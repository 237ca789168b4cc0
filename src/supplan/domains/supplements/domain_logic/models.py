"""Supplement planner domain models and constants."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any

from supplan.domains.supplements.domain_logic.dates import parse_iso_date, to_iso


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class CycleMode(str, Enum):
    """How an item's ON/OFF phase is decided."""

    NONE = "none"            # always ON
    CALENDAR = "calendar"    # fixed rotation by elapsed calendar days
    ADHERENCE = "adherence"  # ON phase advances only on completed days

    @classmethod
    def parse(cls, value: Any) -> CycleMode:
        """Parse a mode string, accepting the legacy ``taken`` alias.

        Unknown values map to NONE so a bad mode never hides an item.
        """
        text = str(value or "").strip().lower()
        if text == "taken":
            return cls.ADHERENCE
        for mode in cls:
            if mode.value == text:
                return mode
        return cls.NONE


class CycleStatus(str, Enum):
    ON = "ON"
    OFF = "OFF"


class UnitKind(str, Enum):
    CAPS = "caps"
    GRAMS = "g"

    @classmethod
    def parse(cls, value: Any) -> UnitKind | None:
        text = str(value or "").strip().lower()
        for kind in cls:
            if kind.value == text:
                return kind
        return None


class CompletionPolicy(str, Enum):
    """What the absence of a completion mark means.

    DEFAULT_INCOMPLETE: nothing is taken until marked; a mark means "taken".
    DEFAULT_COMPLETE: everything is taken unless marked; a mark means "missed".
    """

    DEFAULT_INCOMPLETE = "default_incomplete"
    DEFAULT_COMPLETE = "default_complete"


UNSPECIFIED_MOMENT = "Sin momento"
DEFAULT_VARIANT = "default"


# ---------------------------------------------------------------------------
# Routine entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoutineItem:
    """One line of the intake routine, immutable once ingested."""

    moment: str
    item_name: str
    dose_text: str
    rule_text: str
    note_text: str
    canonical_key: str
    sort_key: int
    instance_key: str

    def texts(self) -> tuple[str, str, str]:
        """Free-text fields consulted by the weekday/interval extractors."""
        return (self.dose_text, self.rule_text, self.note_text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "moment": self.moment,
            "item_name": self.item_name,
            "dose_text": self.dose_text,
            "rule_text": self.rule_text,
            "note_text": self.note_text,
            "canonical_key": self.canonical_key,
            "sort_key": self.sort_key,
            "instance_key": self.instance_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutineItem:
        """Rebuild a persisted entry; raises KeyError/TypeError on a bad record."""
        return cls(
            moment=str(data["moment"]),
            item_name=str(data["item_name"]),
            dose_text=str(data.get("dose_text") or ""),
            rule_text=str(data.get("rule_text") or ""),
            note_text=str(data.get("note_text") or ""),
            canonical_key=str(data["canonical_key"]),
            sort_key=int(data.get("sort_key", 99)),
            instance_key=str(data["instance_key"]),
        )


# ---------------------------------------------------------------------------
# Cycle configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CycleConfig:
    """Per-item ON/OFF cycle parameters.

    Numeric fields are kept as given (possibly None or NaN from a bad edit);
    evaluators treat anything that is not a finite non-negative number as
    "no cycle" and report ON.
    """

    mode: CycleMode = CycleMode.NONE
    start_date: date | None = None
    on_days: float | None = 0
    off_days: float | None = 0
    initial_pause_days: float | None = 0
    interval_anchor_date: date | None = None
    label: str = ""

    def with_changes(self, **changes: Any) -> CycleConfig:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "start_date": to_iso(self.start_date) if self.start_date else None,
            "on_days": self.on_days,
            "off_days": self.off_days,
            "initial_pause_days": self.initial_pause_days,
            "interval_anchor_date": (
                to_iso(self.interval_anchor_date) if self.interval_anchor_date else None
            ),
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CycleConfig:
        """Build a config from persisted or template data, tolerating junk."""
        return cls(
            mode=CycleMode.parse(data.get("mode")),
            start_date=parse_iso_date(data.get("start_date")),
            on_days=_number_or_none(data.get("on_days")),
            off_days=_number_or_none(data.get("off_days")),
            initial_pause_days=_number_or_none(
                data.get("initial_pause_days", data.get("pause_days", 0))
            ),
            interval_anchor_date=parse_iso_date(data.get("interval_anchor_date")),
            label=str(data.get("label") or ""),
        )


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PriceConfig:
    """Price and pack data for one item; any field may be unknown."""

    unit_price: float | None = None
    pack_size: float | None = None
    unit_kind: UnitKind | None = None
    daily_override_units: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_price": self.unit_price,
            "pack_size": self.pack_size,
            "unit_kind": self.unit_kind.value if self.unit_kind else None,
            "daily_override_units": self.daily_override_units,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriceConfig:
        return cls(
            unit_price=_number_or_none(data.get("unit_price")),
            pack_size=_number_or_none(data.get("pack_size")),
            unit_kind=UnitKind.parse(data.get("unit_kind")),
            daily_override_units=_number_or_none(data.get("daily_override_units")),
        )


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DoseQuantity:
    """Parsed dose: either part may be unknown."""

    value: float | None
    unit: UnitKind | None


@dataclass(frozen=True)
class PlannedItem:
    """A routine entry resolved against one date."""

    item: RoutineItem
    status: CycleStatus
    completed: bool = False

    @property
    def actionable(self) -> bool:
        return self.status is CycleStatus.ON

    def to_dict(self) -> dict[str, Any]:
        data = self.item.to_dict()
        data["status"] = self.status.value
        data["completed"] = self.completed
        return data


@dataclass(frozen=True)
class DayCompletion:
    """Completed vs. planned ON items for a single date."""

    day: date
    planned_count: int
    completed_count: int

    @property
    def ratio(self) -> float:
        if self.planned_count == 0:
            return 0.0
        return self.completed_count / self.planned_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": to_iso(self.day),
            "planned": self.planned_count,
            "completed": self.completed_count,
            "ratio": round(self.ratio, 4),
        }


@dataclass
class PeriodCompletion:
    """Aggregate over a run of days (a week or a month)."""

    days: list[DayCompletion] = field(default_factory=list)

    @property
    def planned_count(self) -> int:
        return sum(d.planned_count for d in self.days)

    @property
    def completed_count(self) -> int:
        return sum(d.completed_count for d in self.days)

    @property
    def ratio(self) -> float:
        planned = self.planned_count
        return self.completed_count / planned if planned else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "planned": self.planned_count,
            "completed": self.completed_count,
            "ratio": round(self.ratio, 4),
            "days": [d.to_dict() for d in self.days],
        }


def _number_or_none(value: Any) -> float | None:
    """Coerce persisted/template numbers; text with a decimal comma is accepted."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return None