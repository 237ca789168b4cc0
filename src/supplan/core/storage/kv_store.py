"""Key-value persistence for planner state.

The planner persists a handful of JSON documents (cycle configs, prices,
completion marks, routines, display options) under fixed keys. Reads never
fail: a missing, corrupt, undecryptable or wrongly-shaped value is replaced by
the caller's fallback. Writes that fail are logged and dropped so that a
storage problem never interrupts schedule evaluation.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from supplan.core.storage.database import DatabaseError, PlannerDatabase
from supplan.core.storage.encryption import EncryptionError, ValueEncryptor

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Persistence contract consumed by the planner store."""

    def load(self, key: str, fallback: Any) -> Any:
        """Stored value for ``key``, or ``fallback`` if absent or malformed."""
        ...

    def save(self, key: str, value: Any) -> None:
        """Persist a JSON-serializable value under ``key``."""
        ...


def _same_shape(value: Any, fallback: Any) -> bool:
    """A dict fallback only accepts a dict, a list fallback only a list."""
    if isinstance(fallback, dict):
        return isinstance(value, dict)
    if isinstance(fallback, list):
        return isinstance(value, list)
    return value is not None


class MemoryKeyValueStore:
    """In-process store with the same contract (tests, ephemeral sessions).

    Values are kept as serialized JSON so callers never share mutable state
    with the store.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def load(self, key: str, fallback: Any) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return copy.deepcopy(fallback)
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Malformed value for %r; using fallback", key)
            return copy.deepcopy(fallback)
        if not _same_shape(value, fallback):
            logger.warning("Unexpected value shape for %r; using fallback", key)
            return copy.deepcopy(fallback)
        return value

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, separators=(",", ":"))

    def raw(self, key: str) -> str | None:
        """Serialized value as stored (for inspection in tests)."""
        return self._data.get(key)


class SQLiteKeyValueStore:
    """Key-value store backed by the ``kv_entries`` table.

    Usage::

        db = PlannerDatabase(":memory:")
        db.initialize()
        kv = SQLiteKeyValueStore(db, ValueEncryptor(key))
        kv.save("supplan:prices:v1", {"magnesium": {"unit_price": 12.5}})
        prices = kv.load("supplan:prices:v1", {})
    """

    def __init__(
        self,
        database: PlannerDatabase,
        encryptor: ValueEncryptor | None = None,
    ) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def encrypted(self) -> bool:
        return self._enc is not None

    def load(self, key: str, fallback: Any) -> Any:
        try:
            row = self._db.connection.execute(
                "SELECT value, encrypted FROM kv_entries WHERE key = ?", (key,)
            ).fetchone()
        except (sqlite3.Error, DatabaseError):
            logger.exception("Failed to read %r; using fallback", key)
            return copy.deepcopy(fallback)

        if row is None:
            return copy.deepcopy(fallback)

        text = row["value"]
        try:
            if row["encrypted"]:
                if self._enc is None:
                    raise EncryptionError("value is encrypted but no key is configured")
                text = self._enc.open(text)
            value = json.loads(text)
        except (EncryptionError, json.JSONDecodeError, TypeError) as exc:
            logger.warning("Unreadable value for %r (%s); using fallback", key, exc)
            return copy.deepcopy(fallback)

        if not _same_shape(value, fallback):
            logger.warning("Unexpected value shape for %r; using fallback", key)
            return copy.deepcopy(fallback)
        return value

    def save(self, key: str, value: Any) -> None:
        text = json.dumps(value, separators=(",", ":"))
        encrypted = 0
        try:
            if self._enc is not None:
                text = self._enc.seal(text)
                encrypted = 1
            conn = self._db.connection
            conn.execute(
                """INSERT INTO kv_entries (key, value, encrypted, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       encrypted = excluded.encrypted,
                       updated_at = excluded.updated_at""",
                (key, text, encrypted, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        except (sqlite3.Error, DatabaseError, EncryptionError):
            logger.exception("Failed to persist %r; change kept in memory only", key)

    def keys(self) -> list[str]:
        rows = self._db.connection.execute("SELECT key FROM kv_entries ORDER BY key").fetchall()
        return [row[0] for row in rows]
