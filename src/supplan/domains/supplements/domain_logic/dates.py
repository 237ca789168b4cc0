"""Calendar helpers shared by the evaluators.

All planner dates are naive ``datetime.date`` values; there is no time of day
and no timezone anywhere in the engine.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterator

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_iso_date(value: Any) -> date | None:
    """Parse ``YYYY-MM-DD`` (or pass through a date); None for anything else."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = _ISO_DATE.match(str(value).strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def to_iso(day: date) -> str:
    return day.isoformat()


def iso_weekday(day: date) -> int:
    """Monday=1 .. Sunday=7."""
    return day.isoweekday()


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative when end precedes start)."""
    return (end - start).days


def start_of_week_monday(day: date) -> date:
    return day - timedelta(days=day.isoweekday() - 1)


def week_days(day: date) -> list[date]:
    """The Monday-to-Sunday week containing ``day``, cut short at ``date.max``."""
    start = start_of_week_monday(day)
    length = min(7, (date.max - start).days + 1)
    return [start + timedelta(days=i) for i in range(length)]


def month_days(year: int, month: int) -> list[date]:
    last = calendar.monthrange(year, month)[1]
    return [date(year, month, d) for d in range(1, last + 1)]


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every date from ``start`` to ``end`` inclusive."""
    current = start
    step = timedelta(days=1)
    while current <= end:
        yield current
        if current == end:
            return
        current += step


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)
