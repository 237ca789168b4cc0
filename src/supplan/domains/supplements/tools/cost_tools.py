"""MCP tools for yearly consumption and cost projections."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from supplan.domains.supplements.tools.planner_tools import error_response

if TYPE_CHECKING:
    from supplan.domains.supplements.domain_logic.cost_estimator import CostEstimator
    from supplan.domains.supplements.domain_logic.scheduler import Scheduler

logger = logging.getLogger(__name__)


def register_cost_tools(mcp: FastMCP, estimator: CostEstimator, scheduler: Scheduler) -> None:
    """Register cost projection tools on the MCP server."""

    @mcp.tool
    async def yearly_costs(ctx: Context, year: int = 0) -> str:
        """Project yearly units and cost per item from the planned ON days.

        Items without a price or pack size are listed last with an unknown
        (null) cost; the rest are ordered by descending yearly cost.

        Args:
            year: Four-digit year. Defaults to the current year.
        """
        year = year or scheduler.today().year
        if not 1 <= year <= 9999:
            return error_response(f"Invalid year: {year}")
        report = estimator.estimate_year(year)
        logger.info(
            "Cost report %d: %d items, %d without pricing",
            year,
            len(report.rows),
            report.missing_count,
        )
        return json.dumps(report.to_dict())
