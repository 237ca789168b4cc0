"""Shared test fixtures for supplement planner tests."""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("TEMPLATES_PATH", "")
    monkeypatch.setenv("COMPLETION_POLICY", "default_incomplete")
    monkeypatch.setenv("SHOW_OFF_ITEMS", "false")
    monkeypatch.setenv("DEFAULT_MEAL_VARIANT", "default")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from supplan.core.storage.kv_store import MemoryKeyValueStore  # noqa: E402
from supplan.domains.supplements.connectors.routine_ingest import build_routine  # noqa: E402
from supplan.domains.supplements.domain_logic.models import CompletionPolicy  # noqa: E402
from supplan.domains.supplements.domain_logic.scheduler import Scheduler  # noqa: E402
from supplan.domains.supplements.store import PlannerStore  # noqa: E402

# Fixed "today" for every scheduler built by the fixtures.
TODAY = date(2024, 3, 15)


def make_row(
    item_name: str,
    moment: str = "Desayuno",
    dose: str = "1 cápsula",
    rule: str = "",
    note: str = "",
) -> dict[str, Any]:
    """A routine row keyed the way spreadsheet exports name the columns."""
    return {
        "Momento": moment,
        "Suplemento": item_name,
        "Dosis": dose,
        "Regla": rule,
        "Notas": note,
    }


class StaticTemplates:
    """TemplateLookup returning fixed suggestions by exact item name."""

    def __init__(self, suggestions: dict[str, dict[str, Any]] | None = None) -> None:
        self._suggestions = suggestions or {}
        self.calls: list[str] = []

    def suggest(self, item_name: str) -> dict[str, Any] | None:
        self.calls.append(item_name)
        return self._suggestions.get(item_name)


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def planner_db():
    """Create an in-memory PlannerDatabase for testing."""
    from supplan.core.storage.database import PlannerDatabase

    db = PlannerDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def value_encryptor():
    """Create a ValueEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from supplan.core.storage.encryption import ValueEncryptor

    return ValueEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def memory_kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


# ---------------------------------------------------------------------------
# Planner fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store(memory_kv: MemoryKeyValueStore) -> PlannerStore:
    """Empty planner store under the default-incomplete policy."""
    planner = PlannerStore(memory_kv, StaticTemplates())
    planner.load()
    return planner


@pytest.fixture
def inverted_store(memory_kv: MemoryKeyValueStore) -> PlannerStore:
    """Planner store where every entry counts as taken unless marked."""
    planner = PlannerStore(
        memory_kv,
        StaticTemplates(),
        policy=CompletionPolicy.DEFAULT_COMPLETE,
    )
    planner.load()
    return planner


@pytest.fixture
def scheduler(store: PlannerStore) -> Scheduler:
    return Scheduler(store, today=lambda: TODAY)


def load_routine(planner: PlannerStore, rows: list[dict[str, Any]], variant: str = "default") -> None:
    """Ingest ``rows`` into ``planner`` as if imported on 2024-01-01."""
    planner.set_routine(build_routine(rows), variant, loaded_on=date(2024, 1, 1))
