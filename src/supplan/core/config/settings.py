"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Supplement planner server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the tools.
    supplan_host: str = "127.0.0.1"
    supplan_port: int = 8011
    supplan_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is true.
    supplan_allow_insecure_bind: bool = False

    # Storage (planner key-value store)
    db_path: str = "~/.supplan/planner.db"

    # Encryption at rest (Fernet key); empty stores plain JSON
    encryption_key: str = ""

    # Planner behaviour
    completion_policy: Literal["default_incomplete", "default_complete"] = "default_incomplete"
    show_off_items: bool = False
    default_meal_variant: str = "default"

    # Cycle templates (empty = packaged catalog)
    templates_path: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
