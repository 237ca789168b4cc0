"""Planner connectors — collaborators that feed the scheduling engine."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TemplateLookup(Protocol):
    """Suggests cycle parameters for an item seen for the first time.

    Consulted only when no cycle configuration exists yet for the item's
    canonical key; the suggestion seeds that configuration once.
    """

    def suggest(self, item_name: str) -> dict[str, Any] | None:
        """CycleConfig fields (``mode``, ``on_days``, ...) or None for no opinion."""
        ...
