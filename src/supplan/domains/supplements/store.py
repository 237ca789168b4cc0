"""Planner state store — the single owner of mutable planner configuration.

Cycle configs, price configs, completion marks, routines and display options
live here and change only through the accessor methods below. Every mutation
is persisted immediately through the key-value store and bumps a version
counter; evaluators key their caches on those versions instead of watching the
data itself.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from supplan.core.storage.kv_store import KeyValueStore
from supplan.domains.supplements.connectors import TemplateLookup
from supplan.domains.supplements.domain_logic.dates import parse_iso_date, to_iso
from supplan.domains.supplements.domain_logic.models import (
    DEFAULT_VARIANT,
    CompletionPolicy,
    CycleConfig,
    PriceConfig,
    RoutineItem,
    UnitKind,
)

logger = logging.getLogger(__name__)

CYCLES_KEY = "supplan:cycles:v1"
PRICES_KEY = "supplan:prices:v1"
COMPLETIONS_KEY = "supplan:completions:v1"
ROUTINES_KEY = "supplan:routines:v1"
DISPLAY_KEY = "supplan:display:v1"


class PlannerStore:
    """Mutable planner state with versioned, persisted mutation.

    Usage::

        store = PlannerStore(MemoryKeyValueStore(), catalog)
        store.load()
        store.set_routine(build_routine(rows))
        store.ensure_cycle_config("ashwagandha", "Ashwagandha")
        store.set_completed(date(2024, 1, 2), "Desayuno||ashwagandha", True)
    """

    def __init__(
        self,
        kv: KeyValueStore,
        templates: TemplateLookup | None = None,
        *,
        policy: CompletionPolicy = CompletionPolicy.DEFAULT_INCOMPLETE,
        show_off: bool = False,
        default_variant: str = DEFAULT_VARIANT,
    ) -> None:
        self._kv = kv
        self._templates = templates
        self._policy = policy

        self._cycles: dict[str, CycleConfig] = {}
        self._prices: dict[str, PriceConfig] = {}
        self._marks: dict[str, dict[str, bool]] = {}
        self._routines: dict[str, list[RoutineItem]] = {}
        self._routine_loaded_on: date | None = None
        self._variant_by_date: dict[str, str] = {}
        self._default_variant = default_variant
        self._show_off = show_off

        self._config_versions: dict[str, int] = {}
        self._records_version = 0
        self._routine_version = 0
        self._price_version = 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Rehydrate all state from the key-value store.

        Malformed entries are skipped individually; a wholly malformed
        document is replaced by an empty one by the store itself.
        """
        self._cycles = {}
        for key, raw in self._kv.load(CYCLES_KEY, {}).items():
            if isinstance(raw, dict):
                self._cycles[key] = CycleConfig.from_dict(raw)
            else:
                logger.warning("Ignoring malformed cycle config for %r", key)

        self._prices = {}
        for key, raw in self._kv.load(PRICES_KEY, {}).items():
            if isinstance(raw, dict):
                self._prices[key] = PriceConfig.from_dict(raw)
            else:
                logger.warning("Ignoring malformed price config for %r", key)

        self._marks = {}
        for iso, day_marks in self._kv.load(COMPLETIONS_KEY, {}).items():
            if parse_iso_date(iso) is None or not isinstance(day_marks, dict):
                logger.warning("Ignoring malformed completion record for %r", iso)
                continue
            marked = {k: True for k, v in day_marks.items() if v is True}
            if marked:
                self._marks[iso] = marked

        routines_doc = self._kv.load(ROUTINES_KEY, {})
        self._routines = {}
        variants = routines_doc.get("variants")
        for variant, entries in (variants.items() if isinstance(variants, dict) else []):
            items = []
            for raw in entries if isinstance(entries, list) else []:
                try:
                    items.append(RoutineItem.from_dict(raw))
                except (KeyError, TypeError, ValueError):
                    logger.warning("Ignoring malformed routine entry in variant %r", variant)
            self._routines[variant] = items
        self._routine_loaded_on = parse_iso_date(routines_doc.get("loaded_on"))

        display = self._kv.load(DISPLAY_KEY, {})
        if isinstance(display.get("show_off"), bool):
            self._show_off = display["show_off"]
        if isinstance(display.get("default_variant"), str) and display["default_variant"]:
            self._default_variant = display["default_variant"]
        by_date = display.get("variant_by_date")
        self._variant_by_date = {
            iso: v
            for iso, v in (by_date.items() if isinstance(by_date, dict) else [])
            if parse_iso_date(iso) is not None and isinstance(v, str)
        }

        for key in set(self._config_versions) | set(self._cycles):
            self._config_versions[key] = self.config_version(key) + 1
        self._records_version += 1
        self._routine_version += 1
        self._price_version += 1
        logger.info(
            "Planner state loaded: %d cycle configs, %d price configs, %d days with marks, "
            "%d routine variants",
            len(self._cycles),
            len(self._prices),
            len(self._marks),
            len(self._routines),
        )

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    @property
    def kv(self) -> KeyValueStore:
        return self._kv

    @property
    def policy(self) -> CompletionPolicy:
        return self._policy

    @property
    def records_version(self) -> int:
        return self._records_version

    @property
    def routine_version(self) -> int:
        return self._routine_version

    def config_version(self, canonical_key: str) -> int:
        return self._config_versions.get(canonical_key, 0)

    def version_stamp(self) -> tuple[Any, ...]:
        """Every version counter at once; equal stamps mean unchanged state."""
        return (
            tuple(sorted(self._config_versions.items())),
            self._records_version,
            self._routine_version,
            self._price_version,
            self._show_off,
            tuple(sorted(self._variant_by_date.items())),
            self._default_variant,
        )

    # ------------------------------------------------------------------
    # Cycle configs
    # ------------------------------------------------------------------

    def cycle_config(self, canonical_key: str) -> CycleConfig | None:
        return self._cycles.get(canonical_key)

    def cycle_configs(self) -> dict[str, CycleConfig]:
        return dict(self._cycles)

    def ensure_cycle_config(
        self,
        canonical_key: str,
        item_name: str,
        *,
        start_date: date | None = None,
    ) -> CycleConfig:
        """Existing config, or a new one seeded from the template lookup.

        A suggested cycle without its own start date starts on ``start_date``.
        """
        existing = self._cycles.get(canonical_key)
        if existing is not None:
            return existing

        suggestion = self._templates.suggest(item_name) if self._templates else None
        config = CycleConfig.from_dict(suggestion) if suggestion else CycleConfig()
        if config.start_date is None and start_date is not None:
            config = config.with_changes(start_date=start_date)
        if suggestion:
            logger.info("Seeded cycle config for %r from template (%s)", canonical_key, config.mode.value)
        self.set_cycle_config(canonical_key, config)
        return config

    def set_cycle_config(self, canonical_key: str, config: CycleConfig) -> None:
        self._cycles[canonical_key] = config
        self._config_versions[canonical_key] = self.config_version(canonical_key) + 1
        self._save_cycles()

    def update_cycle_config(self, canonical_key: str, **fields: Any) -> CycleConfig:
        """Apply field changes on top of the current (or default) config."""
        base = self._cycles.get(canonical_key) or CycleConfig()
        config = base.with_changes(**fields)
        self.set_cycle_config(canonical_key, config)
        return config

    def _save_cycles(self) -> None:
        self._kv.save(CYCLES_KEY, {k: c.to_dict() for k, c in self._cycles.items()})

    # ------------------------------------------------------------------
    # Price configs
    # ------------------------------------------------------------------

    def price_config(self, canonical_key: str) -> PriceConfig | None:
        return self._prices.get(canonical_key)

    def price_configs(self) -> dict[str, PriceConfig]:
        return dict(self._prices)

    def set_price_config(self, canonical_key: str, price: PriceConfig) -> None:
        self._prices[canonical_key] = price
        self._price_version += 1
        self._save_prices()

    def update_price_config(self, canonical_key: str, **fields: Any) -> PriceConfig:
        base = self._prices.get(canonical_key) or PriceConfig()
        data = base.to_dict()
        data.update({k: v.value if isinstance(v, UnitKind) else v for k, v in fields.items()})
        price = PriceConfig.from_dict(data)
        self.set_price_config(canonical_key, price)
        return price

    def clear_price_config(self, canonical_key: str) -> bool:
        if self._prices.pop(canonical_key, None) is None:
            return False
        self._price_version += 1
        self._save_prices()
        return True

    def _save_prices(self) -> None:
        self._kv.save(PRICES_KEY, {k: p.to_dict() for k, p in self._prices.items()})

    # ------------------------------------------------------------------
    # Completion records
    # ------------------------------------------------------------------

    def is_marked(self, day: date, instance_key: str) -> bool:
        return self._marks.get(to_iso(day), {}).get(instance_key, False)

    def marked_for(self, day: date) -> dict[str, bool]:
        return dict(self._marks.get(to_iso(day), {}))

    def set_marked(self, day: date, instance_key: str, marked: bool) -> None:
        self._apply_marks(day, {instance_key: marked})

    def is_completed(self, day: date, instance_key: str) -> bool:
        """Completion under the active policy (a mark flips the default)."""
        marked = self.is_marked(day, instance_key)
        if self._policy is CompletionPolicy.DEFAULT_INCOMPLETE:
            return marked
        return not marked

    def set_completed(self, day: date, instance_key: str, completed: bool) -> None:
        self.set_many_completed(day, [instance_key], completed)

    def set_many_completed(self, day: date, instance_keys: Iterable[str], completed: bool) -> None:
        """Record the same completion state for several entries in one write."""
        marked = completed if self._policy is CompletionPolicy.DEFAULT_INCOMPLETE else not completed
        self._apply_marks(day, {k: marked for k in instance_keys})

    def clear_day(self, day: date) -> None:
        """Drop every mark for ``day``, returning all its entries to the default."""
        if self._marks.pop(to_iso(day), None) is not None:
            self._records_version += 1
            self._save_marks()

    def _apply_marks(self, day: date, changes: dict[str, bool]) -> None:
        iso = to_iso(day)
        day_marks = dict(self._marks.get(iso, {}))
        for key, marked in changes.items():
            if marked:
                day_marks[key] = True
            else:
                day_marks.pop(key, None)
        if day_marks:
            self._marks[iso] = day_marks
        else:
            self._marks.pop(iso, None)
        self._records_version += 1
        self._save_marks()

    def _save_marks(self) -> None:
        self._kv.save(COMPLETIONS_KEY, self._marks)

    # ------------------------------------------------------------------
    # Routines and meal variants
    # ------------------------------------------------------------------

    def set_routine(
        self,
        items: Iterable[RoutineItem],
        variant: str = DEFAULT_VARIANT,
        *,
        loaded_on: date | None = None,
    ) -> None:
        """Replace one routine variant; records the import date."""
        self._routines[variant] = list(items)
        self._routine_loaded_on = loaded_on or date.today()
        self._routine_version += 1
        self._save_routines()
        logger.info("Routine variant %r set: %d entries", variant, len(self._routines[variant]))

    def routine(self, variant: str | None = None) -> list[RoutineItem]:
        return list(self._routines.get(variant or self._default_variant, []))

    def variants(self) -> list[str]:
        return sorted(self._routines)

    @property
    def routine_loaded_on(self) -> date | None:
        return self._routine_loaded_on

    @property
    def default_variant(self) -> str:
        return self._default_variant

    def set_default_variant(self, variant: str) -> None:
        self._default_variant = variant
        self._routine_version += 1
        self._save_display()

    def meal_variant_for(self, day: date) -> str:
        return self._variant_by_date.get(to_iso(day), self._default_variant)

    def set_meal_variant(self, day: date, variant: str | None) -> None:
        """Pin ``day`` to a routine variant; None restores the default."""
        iso = to_iso(day)
        if variant is None:
            self._variant_by_date.pop(iso, None)
        else:
            self._variant_by_date[iso] = variant
        self._routine_version += 1
        self._save_display()

    def routine_for(self, day: date) -> list[RoutineItem]:
        """Routine entries of the variant that applies on ``day``."""
        return self._routines.get(self.meal_variant_for(day), [])

    def all_items(self) -> dict[str, str]:
        """Canonical key -> display name across all variants and configs."""
        names: dict[str, str] = {}
        for variant in self.variants():
            for item in self._routines[variant]:
                names.setdefault(item.canonical_key, item.item_name)
        for key in list(self._cycles) + list(self._prices):
            names.setdefault(key, key)
        return dict(sorted(names.items(), key=lambda kv: kv[1].casefold()))

    def _save_routines(self) -> None:
        self._kv.save(
            ROUTINES_KEY,
            {
                "variants": {v: [i.to_dict() for i in items] for v, items in self._routines.items()},
                "loaded_on": to_iso(self._routine_loaded_on) if self._routine_loaded_on else None,
            },
        )

    # ------------------------------------------------------------------
    # Display options
    # ------------------------------------------------------------------

    @property
    def show_off(self) -> bool:
        return self._show_off

    def set_show_off(self, show_off: bool) -> None:
        self._show_off = bool(show_off)
        self._save_display()

    def _save_display(self) -> None:
        self._kv.save(
            DISPLAY_KEY,
            {
                "show_off": self._show_off,
                "default_variant": self._default_variant,
                "variant_by_date": self._variant_by_date,
            },
        )
