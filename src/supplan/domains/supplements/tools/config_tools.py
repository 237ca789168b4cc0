"""MCP tools for per-item cycle and price configuration and display options.

Items are addressed by display name; the name is canonicalized so that
"Ashwagandha®" and "ashwagandha" configure the same item.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from supplan.domains.supplements.domain_logic.canonical import canonicalize
from supplan.domains.supplements.domain_logic.models import CycleMode, UnitKind
from supplan.domains.supplements.tools.planner_tools import error_response, resolve_day

if TYPE_CHECKING:
    from supplan.domains.supplements.store import PlannerStore

logger = logging.getLogger(__name__)

_MODE_NAMES = {"none", "calendar", "adherence", "taken"}


def _non_negative(name: str, value: float | None) -> str | None:
    """Validation message for a numeric argument, or None when acceptable."""
    if value is None:
        return None
    if not math.isfinite(value) or value < 0:
        return f"{name} must be a finite number >= 0, got {value!r}"
    return None


def _override_units(value: float | str | None) -> tuple[Any, str | None]:
    """Daily override as entered; text may use a decimal comma, blank clears it."""
    if value is None:
        return None, None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return "", None
        try:
            value = float(text.replace(",", "."))
        except ValueError:
            return None, f"daily_override_units is not a number: {text!r}"
    problem = _non_negative("daily_override_units", float(value))
    return value, problem


def register_config_tools(mcp: FastMCP, store: PlannerStore) -> None:
    """Register configuration tools on the MCP server."""

    def _item_key(item_name: str) -> str | None:
        key = canonicalize(item_name)
        return key or None

    @mcp.tool
    async def configure_cycle(
        ctx: Context,
        item_name: str,
        mode: str = "",
        start_date: str = "",
        on_days: float | None = None,
        off_days: float | None = None,
        initial_pause_days: float | None = None,
        interval_anchor_date: str = "",
        label: str = "",
    ) -> str:
        """Set the ON/OFF cycle of an item. Omitted fields keep their current value.

        Args:
            item_name: Item display name (e.g., 'Ashwagandha').
            mode: 'none' (always ON), 'calendar' (fixed rotation) or 'adherence'
                (ON phase advances only on days actually taken; 'taken' is an alias).
            start_date: First day of the cycle (ISO 8601).
            on_days: Length of the ON phase in days.
            off_days: Length of the OFF phase in days (0 = stays ON once reached).
            initial_pause_days: OFF days before the first ON phase.
            interval_anchor_date: Day zero for "every N days" rules (ISO 8601).
            label: Free-form note shown with the config.
        """
        key = _item_key(item_name)
        if key is None:
            return error_response("item_name must contain letters or digits")

        changes: dict[str, Any] = {}
        if mode:
            if mode.strip().lower() not in _MODE_NAMES:
                return error_response(f"Unknown cycle mode: {mode!r}")
            changes["mode"] = CycleMode.parse(mode)
        for name, raw in (("start_date", start_date), ("interval_anchor_date", interval_anchor_date)):
            if raw:
                parsed = resolve_day(raw, None)
                if parsed is None:
                    return error_response(f"Invalid {name}: {raw!r}")
                changes[name] = parsed
        for name, value in (
            ("on_days", on_days),
            ("off_days", off_days),
            ("initial_pause_days", initial_pause_days),
        ):
            problem = _non_negative(name, value)
            if problem:
                return error_response(problem)
            if value is not None:
                changes[name] = int(value) if float(value).is_integer() else value
        if label:
            changes["label"] = label

        config = store.update_cycle_config(key, **changes)
        logger.info("Cycle config for %r updated: %s", key, sorted(changes))
        return json.dumps({"status": "saved", "canonical_key": key, "cycle": config.to_dict()})

    @mcp.tool
    async def configure_price(
        ctx: Context,
        item_name: str,
        unit_price: float | None = None,
        pack_size: float | None = None,
        unit_kind: str = "",
        daily_override_units: float | str | None = None,
        clear: bool = False,
    ) -> str:
        """Set price and pack data for an item. Omitted fields keep their current value.

        Args:
            item_name: Item display name.
            unit_price: Price of one pack.
            pack_size: Units per pack (capsules or grams).
            unit_kind: 'caps' or 'g'; also the unit preferred when parsing doses.
            daily_override_units: Units per ON day, replacing the parsed dose
                (text accepts a decimal comma; empty text clears it).
            clear: Remove all price data for the item instead.
        """
        key = _item_key(item_name)
        if key is None:
            return error_response("item_name must contain letters or digits")

        if clear:
            removed = store.clear_price_config(key)
            return json.dumps({"status": "cleared" if removed else "unchanged", "canonical_key": key})

        fields: dict[str, Any] = {}
        for name, value in (("unit_price", unit_price), ("pack_size", pack_size)):
            problem = _non_negative(name, value)
            if problem:
                return error_response(problem)
            if value is not None:
                fields[name] = value
        if unit_kind:
            kind = UnitKind.parse(unit_kind)
            if kind is None:
                return error_response(f"Unknown unit kind: {unit_kind!r} (use 'caps' or 'g')")
            fields["unit_kind"] = kind
        override, problem = _override_units(daily_override_units)
        if problem:
            return error_response(problem)
        if override is not None:
            fields["daily_override_units"] = override

        price = store.update_price_config(key, **fields)
        logger.info("Price config for %r updated: %s", key, sorted(fields))
        return json.dumps({"status": "saved", "canonical_key": key, "price": price.to_dict()})

    @mcp.tool
    async def set_display_options(
        ctx: Context,
        show_off: bool | None = None,
        meal_variant: str = "",
        date: str = "",
        default_variant: str = "",
    ) -> str:
        """Change display options and the routine variant used per date.

        Args:
            show_off: Also list OFF entries in day plans.
            meal_variant: Routine variant for ``date`` (e.g., '3 comidas'). With a
                date and no variant, the date goes back to the default variant.
            date: Day the meal variant applies to (ISO 8601).
            default_variant: Variant used for dates without their own choice.
        """
        if show_off is not None:
            store.set_show_off(show_off)
        if default_variant:
            store.set_default_variant(default_variant.strip())
        if date:
            day = resolve_day(date, None)
            if day is None:
                return error_response(f"Invalid date: {date!r}")
            store.set_meal_variant(day, meal_variant.strip() or None)
        elif meal_variant:
            return error_response("meal_variant needs a date (use default_variant otherwise)")

        return json.dumps({
            "status": "saved",
            "show_off": store.show_off,
            "default_variant": store.default_variant,
            "variants": store.variants(),
        })

    @mcp.tool
    async def list_items(ctx: Context) -> str:
        """List every known item with its cycle and price configuration."""
        items = []
        for key, name in store.all_items().items():
            cycle = store.cycle_config(key)
            price = store.price_config(key)
            items.append({
                "canonical_key": key,
                "name": name,
                "cycle": cycle.to_dict() if cycle else None,
                "price": price.to_dict() if price else None,
            })
        return json.dumps({
            "items": items,
            "count": len(items),
            "variants": store.variants(),
            "default_variant": store.default_variant,
        })
