"""MCP tools for the daily plan: what is due, and what was taken.

Dates are ISO 8601 strings; an empty date means today.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from supplan.domains.supplements.domain_logic.dates import parse_iso_date, week_days

if TYPE_CHECKING:
    from supplan.domains.supplements.domain_logic.scheduler import Scheduler

logger = logging.getLogger(__name__)


def resolve_day(value: str, today: date) -> date | None:
    """Parse a tool date argument; blank means ``today``, junk means None."""
    if not value or not value.strip():
        return today
    return parse_iso_date(value.strip())


def error_response(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def register_planner_tools(mcp: FastMCP, scheduler: Scheduler) -> None:
    """Register plan views and completion-marking tools on the MCP server."""
    store = scheduler.store

    def _day_payload(day: date) -> dict:
        groups = scheduler.grouped_by_moment(day)
        return {
            "date": day.isoformat(),
            "meal_variant": store.meal_variant_for(day),
            "show_off": store.show_off,
            "items": [p.to_dict() for _, planned in groups for p in planned],
            "moments": [
                {"moment": moment, "instance_keys": [p.item.instance_key for p in planned]}
                for moment, planned in groups
            ],
            "completion": scheduler.completion_for(day).to_dict(),
        }

    @mcp.tool
    async def plan_day(ctx: Context, date: str = "") -> str:
        """List the routine entries planned for a date, with ON/OFF status and completion.

        Entries are ordered by moment of the day, then item name, and also
        listed per moment under "moments". OFF entries appear only when the
        "show OFF" display option is on.

        Args:
            date: Day to plan (ISO 8601, e.g., '2024-01-15'). Defaults to today.
        """
        day = resolve_day(date, scheduler.today())
        if day is None:
            return error_response(f"Invalid date: {date!r}")
        return json.dumps(_day_payload(day))

    @mcp.tool
    async def plan_week(ctx: Context, date: str = "") -> str:
        """Completion summary for the Monday-to-Sunday week containing a date.

        Args:
            date: Any day inside the week (ISO 8601). Defaults to today.
        """
        day = resolve_day(date, scheduler.today())
        if day is None:
            return error_response(f"Invalid date: {date!r}")
        week = scheduler.week_completion(day)
        days = week_days(day)
        return json.dumps({
            "week_start": days[0].isoformat(),
            "week_end": days[-1].isoformat(),
            **week.to_dict(),
        })

    @mcp.tool
    async def plan_month(ctx: Context, year: int = 0, month: int = 0) -> str:
        """Per-day completion ratios for a calendar month.

        Args:
            year: Four-digit year. Defaults to the current year.
            month: Month number 1-12. Defaults to the current month.
        """
        today = scheduler.today()
        year = year or today.year
        month = month or today.month
        if not 1 <= month <= 12 or not 1 <= year <= 9999:
            return error_response(f"Invalid month: {year}-{month}")
        summary = scheduler.month_completion(year, month)
        return json.dumps({"year": year, "month": month, **summary.to_dict()})

    @mcp.tool
    async def mark_item(
        ctx: Context,
        instance_key: str,
        completed: bool = True,
        date: str = "",
    ) -> str:
        """Mark one routine entry as taken (or not taken) on a date.

        Args:
            instance_key: Entry key as returned by plan_day (e.g., 'Desayuno||magnesio').
            completed: True when taken, False to undo.
            date: Day of the intake (ISO 8601). Defaults to today.
        """
        day = resolve_day(date, scheduler.today())
        if day is None:
            return error_response(f"Invalid date: {date!r}")
        known = {item.instance_key for item in store.routine_for(day)}
        if instance_key not in known:
            return error_response(f"Unknown routine entry on {day.isoformat()}: {instance_key!r}")

        scheduler.mark_item(day, instance_key, completed)
        logger.info("Entry %r marked %s on %s", instance_key, completed, day.isoformat())
        return json.dumps({
            "status": "saved",
            "date": day.isoformat(),
            "instance_key": instance_key,
            "completed": completed,
            "completion": scheduler.completion_for(day).to_dict(),
        })

    @mcp.tool
    async def mark_all(ctx: Context, date: str = "") -> str:
        """Mark every ON entry planned for a date as taken.

        Args:
            date: Day to complete (ISO 8601). Defaults to today.
        """
        day = resolve_day(date, scheduler.today())
        if day is None:
            return error_response(f"Invalid date: {date!r}")
        keys = scheduler.mark_all(day)
        return json.dumps({
            "status": "saved",
            "date": day.isoformat(),
            "marked": keys,
            "completion": scheduler.completion_for(day).to_dict(),
        })

    @mcp.tool
    async def clear_day(ctx: Context, date: str = "") -> str:
        """Remove every completion mark recorded for a date.

        Args:
            date: Day to reset (ISO 8601). Defaults to today.
        """
        day = resolve_day(date, scheduler.today())
        if day is None:
            return error_response(f"Invalid date: {date!r}")
        scheduler.clear_day(day)
        return json.dumps({
            "status": "cleared",
            "date": day.isoformat(),
            "completion": scheduler.completion_for(day).to_dict(),
        })
