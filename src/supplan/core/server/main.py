"""Planner server entry point — ``python -m supplan.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from supplan.core.config.settings import Settings, get_settings
from supplan.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def describe_storage(settings: Settings) -> str:
    """Where planner state goes, as shown in the startup log."""
    if settings.db_path == ":memory:":
        return "in-memory (lost on restart)"
    protection = "encrypted" if settings.encryption_key else "plain JSON"
    return f"{settings.db_path} ({protection})"


def startup_summary(settings: Settings) -> str:
    templates = settings.templates_path or "packaged catalog"
    return (
        f"storage={describe_storage(settings)}, "
        f"completion_policy={settings.completion_policy}, "
        f"default_variant={settings.default_meal_variant!r}, "
        f"show_off={settings.show_off_items}, "
        f"templates={templates}"
    )


def run() -> None:
    """Start the planner MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.supplan_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.supplan_allow_insecure_bind and not _is_loopback_host(settings.supplan_host):
        raise RuntimeError(
            "Refusing to expose supplement plans and intake records on a non-loopback host "
            "without an auth layer. Set SUPPLAN_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Supplement Planner on %s:%d (%s)",
        settings.supplan_host,
        settings.supplan_port,
        startup_summary(settings),
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.supplan_host,
        port=settings.supplan_port,
    )


if __name__ == "__main__":
    run()
