"""Supplement planner MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Callable

from fastmcp import FastMCP

from supplan.core.config.settings import Settings, get_settings
from supplan.core.storage.database import DatabaseError, PlannerDatabase
from supplan.core.storage.encryption import EncryptionError, ValueEncryptor
from supplan.core.storage.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
)
from supplan.domains.supplements.connectors.templates import load_default_catalog
from supplan.domains.supplements.domain_logic.cost_estimator import CostEstimator
from supplan.domains.supplements.domain_logic.models import CompletionPolicy
from supplan.domains.supplements.domain_logic.scheduler import Scheduler
from supplan.domains.supplements.store import PlannerStore
from supplan.domains.supplements.tools.config_tools import register_config_tools
from supplan.domains.supplements.tools.cost_tools import register_cost_tools
from supplan.domains.supplements.tools.planner_tools import register_planner_tools
from supplan.domains.supplements.tools.routine_tools import register_routine_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Supplement Planner"
SERVER_VERSION = "0.1.0"


def _build_kv_store(settings: Settings) -> tuple[KeyValueStore, bool]:
    """SQLite-backed store per settings; in-memory when storage cannot start.

    Returns the store and whether it persists across restarts.
    """
    encryptor: ValueEncryptor | None = None
    if settings.encryption_key:
        try:
            encryptor = ValueEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Failed to initialize encryption: %s", exc)
            logger.warning("Continuing without persistence — changes will not be stored")
            return MemoryKeyValueStore(), False

    try:
        database = PlannerDatabase(settings.db_path)
        database.initialize()
    except (OSError, sqlite3.Error, DatabaseError) as exc:
        logger.error("Failed to open planner database %s: %s", settings.db_path, exc)
        logger.warning("Continuing without persistence — changes will not be stored")
        return MemoryKeyValueStore(), False

    logger.info(
        "Planner storage initialized: %s (schema v%d, %s)",
        settings.db_path,
        database.get_schema_version(),
        "encrypted" if encryptor else "plain",
    )
    return SQLiteKeyValueStore(database, encryptor), True


def create_app(
    *,
    store_override: PlannerStore | None = None,
    today_override: Callable[[], date] | None = None,
) -> FastMCP:
    """Create and configure the supplement planner MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the key-value storage (SQLite, optionally encrypted)
    3. Loads the cycle-template catalog and the planner store
    4. Builds the scheduler and cost estimator over the store
    5. Registers all tools
    """
    settings = get_settings()
    today = today_override or date.today

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Supplement ON/OFF cycle planner. Plans which routine entries are due "
            "on a date, tracks completion, configures calendar or adherence-driven "
            "cycles, and projects yearly consumption costs."
        ),
    )

    # --- Planner state ---
    if store_override is not None:
        store = store_override
        persistent = isinstance(store.kv, SQLiteKeyValueStore)
    else:
        kv, persistent = _build_kv_store(settings)
        catalog = load_default_catalog(settings.templates_path)
        store = PlannerStore(
            kv,
            catalog,
            policy=CompletionPolicy(settings.completion_policy),
            show_off=settings.show_off_items,
            default_variant=settings.default_meal_variant,
        )
        store.load()

    # --- Engine ---
    scheduler = Scheduler(store, today=today)
    estimator = CostEstimator(store, scheduler)

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "storage_enabled": persistent,
            "completion_policy": store.policy.value,
            "routine_variants": store.variants(),
            "items_known": len(store.all_items()),
            "today": today().isoformat(),
        }

    register_planner_tools(server, scheduler)
    register_config_tools(server, store)
    register_routine_tools(server, store, scheduler)
    register_cost_tools(server, estimator, scheduler)
    logger.info("Planner tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
