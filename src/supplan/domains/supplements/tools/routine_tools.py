"""MCP tools for importing the intake routine and cycle parameter sheets.

Rows are flat objects as exported from a spreadsheet; Spanish and English
column headers are both accepted (see ``routine_ingest``).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from supplan.domains.supplements.connectors.routine_ingest import (
    build_cycle_parameters,
    build_routine,
    read_csv_rows,
)
from supplan.domains.supplements.domain_logic.models import DEFAULT_VARIANT
from supplan.domains.supplements.tools.planner_tools import error_response

if TYPE_CHECKING:
    from supplan.domains.supplements.domain_logic.scheduler import Scheduler
    from supplan.domains.supplements.store import PlannerStore

logger = logging.getLogger(__name__)


def register_routine_tools(mcp: FastMCP, store: PlannerStore, scheduler: Scheduler) -> None:
    """Register routine and parameter import tools on the MCP server."""

    def _import_routine(rows: list[dict[str, Any]], variant: str) -> dict:
        today = scheduler.today()
        items = build_routine(rows)
        store.set_routine(items, variant, loaded_on=today)

        seeded = []
        names: dict[str, str] = {}
        for item in items:
            names.setdefault(item.canonical_key, item.item_name)
        for key, name in names.items():
            if store.cycle_config(key) is None:
                store.ensure_cycle_config(key, name, start_date=today)
                seeded.append(key)

        return {
            "status": "imported",
            "variant": variant,
            "entries": len(items),
            "skipped_rows": len(rows) - len(items),
            "items": len(names),
            "new_cycle_configs": seeded,
        }

    def _import_parameters(rows: list[dict[str, Any]]) -> dict:
        today = scheduler.today()
        updated = []
        for params in build_cycle_parameters(rows):
            current = store.cycle_config(params.canonical_key)
            start = params.config.start_date
            if start is None:
                start = current.start_date if current and current.start_date else today
            store.update_cycle_config(
                params.canonical_key,
                mode=params.config.mode,
                start_date=start,
                on_days=params.config.on_days,
                off_days=params.config.off_days,
                initial_pause_days=params.config.initial_pause_days,
            )
            updated.append(params.canonical_key)
        return {
            "status": "imported",
            "updated": updated,
            "skipped_rows": len(rows) - len(updated),
        }

    @mcp.tool
    async def import_routine(
        ctx: Context,
        rows: list[dict[str, Any]],
        variant: str = DEFAULT_VARIANT,
    ) -> str:
        """Replace a routine variant with the given rows.

        Each row needs an item name ('Suplemento' / 'itemName') and may carry
        'Momento', 'Dosis', 'Regla' and 'Notas'. Items seen for the first time
        get a cycle suggested from the template catalog, starting today.

        Args:
            rows: Routine rows as flat objects.
            variant: Routine variant name (e.g., '2 comidas'). Defaults to 'default'.
        """
        variant = variant.strip() or DEFAULT_VARIANT
        result = _import_routine(rows, variant)
        logger.info("Routine variant %r imported: %d entries", variant, result["entries"])
        return json.dumps(result)

    @mcp.tool
    async def import_routine_csv(ctx: Context, path: str, variant: str = DEFAULT_VARIANT) -> str:
        """Replace a routine variant with the rows of a CSV export.

        Args:
            path: Path to a UTF-8 CSV file with a header row.
            variant: Routine variant name. Defaults to 'default'.
        """
        try:
            rows = read_csv_rows(path)
        except (OSError, UnicodeDecodeError) as exc:
            return error_response(f"Cannot read CSV {path!r}: {exc}")
        return json.dumps(_import_routine(rows, variant.strip() or DEFAULT_VARIANT))

    @mcp.tool
    async def import_cycle_parameters(ctx: Context, rows: list[dict[str, Any]]) -> str:
        """Apply a cycle parameter sheet as calendar-mode cycles.

        Each row needs 'Suplemento', 'ON (días)' and 'OFF (días)'; optional
        'Pausa inicial (días)' and 'Inicio ciclo (fecha)'. Rows without numeric
        ON/OFF lengths are skipped. Lengths are clamped to 3650 days.

        Args:
            rows: Parameter rows as flat objects.
        """
        result = _import_parameters(rows)
        logger.info("Cycle parameters imported for %d items", len(result["updated"]))
        return json.dumps(result)
