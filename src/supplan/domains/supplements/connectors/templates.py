"""Cycle template catalog — default cycle suggestions read from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from supplan.domains.supplements.domain_logic.canonical import fold_text

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_PATH = (
    Path(__file__).resolve().parent.parent / "templates" / "cycle_templates.yaml"
)

_CYCLE_FIELDS = ("mode", "on_days", "off_days", "initial_pause_days", "label")


class TemplateCatalogError(Exception):
    """Raised when a template file cannot be parsed."""


@dataclass
class CycleTemplate:
    """One suggestion rule: any keyword in ``match`` selects ``fields``."""

    id: str
    match: list[str] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)

    def matches(self, folded_name: str) -> bool:
        return any(keyword in folded_name for keyword in self.match)


class CycleTemplateCatalog:
    """Ordered template rules; the first matching rule wins.

    Usage::

        catalog = load_template_file(DEFAULT_TEMPLATES_PATH)
        catalog.suggest("Ashwagandha KSM-66")
        # {"mode": "calendar", "on_days": 56, "off_days": 14, ...}
    """

    def __init__(self, templates: list[CycleTemplate] | None = None) -> None:
        self._templates: list[CycleTemplate] = list(templates or [])

    def __len__(self) -> int:
        return len(self._templates)

    def all(self) -> list[CycleTemplate]:
        return list(self._templates)

    def suggest(self, item_name: str) -> dict[str, Any] | None:
        folded = fold_text(item_name).strip()
        if not folded:
            return None
        for template in self._templates:
            if template.matches(folded):
                suggestion = {"on_days": 0, "off_days": 0, "initial_pause_days": 0}
                suggestion.update(template.fields)
                return suggestion
        return None


def load_template_file(path: str | Path) -> CycleTemplateCatalog:
    """Parse a YAML template file into a catalog.

    Raises:
        TemplateCatalogError: If the file is missing, not YAML, or lacks ``rules``.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise TemplateCatalogError(f"Cannot read template file {path}: {exc}") from exc

    rules = data.get("rules") if isinstance(data, dict) else None
    if not isinstance(rules, list):
        raise TemplateCatalogError(f"Template file {path} has no 'rules' list")

    templates = []
    for index, rule in enumerate(rules):
        if not isinstance(rule, dict) or not rule.get("match"):
            logger.warning("Skipping malformed template rule #%d in %s", index, path)
            continue
        templates.append(
            CycleTemplate(
                id=str(rule.get("id", f"rule_{index}")),
                match=[fold_text(k) for k in rule["match"]],
                fields={k: rule[k] for k in _CYCLE_FIELDS if k in rule},
            )
        )
    logger.info("Loaded %d cycle templates from %s", len(templates), path)
    return CycleTemplateCatalog(templates)


def load_default_catalog(override_path: str = "") -> CycleTemplateCatalog:
    """Load the configured catalog, falling back to an empty one on error."""
    path = Path(override_path).expanduser() if override_path else DEFAULT_TEMPLATES_PATH
    try:
        return load_template_file(path)
    except TemplateCatalogError as exc:
        logger.warning("%s; continuing without cycle templates", exc)
        return CycleTemplateCatalog()
