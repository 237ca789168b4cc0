"""Tabular row ingestion — routine and cycle-parameter sheets.

Rows arrive as flat dicts (one per spreadsheet/CSV line). Column names vary
between exports (Spanish/English, with or without accents), so every field is
looked up through an alias list. The ingester only normalizes; it never
evaluates schedules.
"""

from __future__ import annotations

import csv
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable

from supplan.domains.supplements.domain_logic.canonical import canonicalize, moment_rank
from supplan.domains.supplements.domain_logic.dates import parse_iso_date
from supplan.domains.supplements.domain_logic.models import (
    UNSPECIFIED_MOMENT,
    CycleConfig,
    CycleMode,
    RoutineItem,
)

logger = logging.getLogger(__name__)

# Field -> accepted column headers, first non-blank wins.
ROUTINE_COLUMNS: dict[str, list[str]] = {
    "moment": ["moment", "Momento", "Momento del Día", "Momento del Dia", "Momento del día", "Moment"],
    "item_name": ["itemName", "item_name", "Suplemento", "Suplementos", "SUPLEMENTO", "Supplement"],
    "dose_text": ["doseText", "dose_text", "Dosis", "Dose"],
    "rule_text": ["ruleText", "rule_text", "Regla", "Rule"],
    "note_text": ["noteText", "note_text", "Notas", "Notes"],
}

PARAMETER_COLUMNS: dict[str, list[str]] = {
    "item_name": ["itemName", "item_name", "Suplemento", "SUPLEMENTO", "Supplement"],
    "on_days": ["on_days", "ON (días)", "ON", "ON (dias)", "ON dias"],
    "off_days": ["off_days", "OFF (días)", "OFF", "OFF (dias)", "OFF dias"],
    "initial_pause_days": ["initial_pause_days", "Pausa inicial (días)", "Pausa inicial (dias)", "Pausa inicial"],
    "start_date": ["start_date", "Inicio ciclo (fecha)", "Inicio ciclo", "Inicio"],
}

MAX_CYCLE_DAYS = 3650

_SHEET_DATE_FORMATS = ("%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d.%m.%Y")


@dataclass(frozen=True)
class CycleParameters:
    """A parameter-sheet row resolved to its canonical key."""

    canonical_key: str
    item_name: str
    config: CycleConfig


def _field(row: dict[str, Any], aliases: list[str]) -> Any:
    for alias in aliases:
        value = row.get(alias)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _text(row: dict[str, Any], aliases: list[str]) -> str:
    value = _field(row, aliases)
    return str(value).strip() if value is not None else ""


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def parse_sheet_date(value: Any) -> date | None:
    """Dates as spreadsheets export them: date objects, ISO, or day-first text."""
    if isinstance(value, (date, datetime)):
        return parse_iso_date(value)
    text = str(value or "").strip()
    if not text:
        return None
    parsed = parse_iso_date(text[:10])
    if parsed is not None:
        return parsed
    for fmt in _SHEET_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def build_routine(rows: Iterable[dict[str, Any]]) -> list[RoutineItem]:
    """Normalize routine rows into RoutineItems.

    Rows whose item name has no letters or digits are dropped; a blank moment
    becomes ``Sin momento``. Repeated (moment, canonical key) pairs get ``#2``,
    ``#3``... suffixes on their instance key so each line keeps its own
    completion mark.
    """
    items: list[RoutineItem] = []
    seen: Counter[str] = Counter()
    skipped = 0

    for row in rows:
        if not isinstance(row, dict):
            skipped += 1
            continue
        item_name = _text(row, ROUTINE_COLUMNS["item_name"])
        if not item_name:
            skipped += 1
            continue

        key = canonicalize(item_name)
        if not key:
            logger.warning("Skipping routine row %r: name has no letters or digits", item_name)
            skipped += 1
            continue

        moment = _text(row, ROUTINE_COLUMNS["moment"]) or UNSPECIFIED_MOMENT
        base = f"{moment}||{key}"
        seen[base] += 1
        instance_key = base if seen[base] == 1 else f"{base}#{seen[base]}"

        items.append(
            RoutineItem(
                moment=moment,
                item_name=item_name,
                dose_text=_text(row, ROUTINE_COLUMNS["dose_text"]),
                rule_text=_text(row, ROUTINE_COLUMNS["rule_text"]),
                note_text=_text(row, ROUTINE_COLUMNS["note_text"]),
                canonical_key=key,
                sort_key=moment_rank(moment),
                instance_key=instance_key,
            )
        )

    logger.info("Ingested %d routine entries (%d rows skipped)", len(items), skipped)
    return items


def build_cycle_parameters(rows: Iterable[dict[str, Any]]) -> list[CycleParameters]:
    """Normalize parameter-sheet rows into calendar-mode cycle configs.

    Rows without a usable name or without numeric ON/OFF lengths are skipped. ON is
    clamped to [1, 3650] days, OFF and the initial pause to [0, 3650].
    """
    results: list[CycleParameters] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        item_name = _text(row, PARAMETER_COLUMNS["item_name"])
        key = canonicalize(item_name)
        if not key:
            if item_name:
                logger.warning("Skipping cycle parameters for %r: name has no letters or digits", item_name)
            continue

        on_days = _number(_field(row, PARAMETER_COLUMNS["on_days"]))
        off_days = _number(_field(row, PARAMETER_COLUMNS["off_days"]))
        if on_days is None or off_days is None:
            logger.warning("Skipping cycle parameters for %r: ON/OFF not numeric", item_name)
            continue
        pause = _number(_field(row, PARAMETER_COLUMNS["initial_pause_days"])) or 0.0

        config = CycleConfig(
            mode=CycleMode.CALENDAR,
            start_date=parse_sheet_date(_field(row, PARAMETER_COLUMNS["start_date"])),
            on_days=int(_clamp(on_days, 1, MAX_CYCLE_DAYS)),
            off_days=int(_clamp(off_days, 0, MAX_CYCLE_DAYS)),
            initial_pause_days=int(_clamp(pause, 0, MAX_CYCLE_DAYS)),
        )
        results.append(CycleParameters(key, item_name, config))
    return results


def read_csv_rows(path: str | Path) -> list[dict[str, Any]]:
    """Read a CSV export into row dicts (UTF-8, BOM tolerated)."""
    with open(Path(path).expanduser(), newline="", encoding="utf-8-sig") as f:
        return [dict(row) for row in csv.DictReader(f)]
