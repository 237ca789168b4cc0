"""Tests for the key-value stores — fallback semantics and encryption at rest."""

from __future__ import annotations

from cryptography.fernet import Fernet

from supplan.core.storage.database import PlannerDatabase
from supplan.core.storage.encryption import ValueEncryptor
from supplan.core.storage.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
)


class TestMemoryStore:
    def test_missing_key_returns_fallback(self):
        kv = MemoryKeyValueStore()
        assert kv.load("absent", {"a": 1}) == {"a": 1}

    def test_fallback_is_copied(self):
        kv = MemoryKeyValueStore()
        fallback = {"nested": {}}
        loaded = kv.load("absent", fallback)
        loaded["nested"]["x"] = 1
        assert fallback == {"nested": {}}

    def test_save_then_load(self):
        kv = MemoryKeyValueStore()
        kv.save("k", {"magnesio": {"unit_price": 12.5}})
        assert kv.load("k", {}) == {"magnesio": {"unit_price": 12.5}}

    def test_loaded_value_is_detached_from_store(self):
        kv = MemoryKeyValueStore()
        kv.save("k", {"a": 1})
        kv.load("k", {})["a"] = 2
        assert kv.load("k", {}) == {"a": 1}

    def test_corrupt_json_returns_fallback(self):
        kv = MemoryKeyValueStore({"k": "{not json"})
        assert kv.load("k", {}) == {}

    def test_wrong_shape_returns_fallback(self):
        kv = MemoryKeyValueStore({"k": "[1, 2, 3]"})
        assert kv.load("k", {}) == {}
        assert kv.load("k", []) == [1, 2, 3]

    def test_satisfies_protocol(self):
        assert isinstance(MemoryKeyValueStore(), KeyValueStore)


class TestSQLiteStore:
    def test_missing_key_returns_fallback(self, planner_db):
        kv = SQLiteKeyValueStore(planner_db)
        assert kv.load("absent", {}) == {}

    def test_save_then_load(self, planner_db):
        kv = SQLiteKeyValueStore(planner_db)
        kv.save("supplan:prices:v1", {"magnesio": {"pack_size": 60}})
        assert kv.load("supplan:prices:v1", {}) == {"magnesio": {"pack_size": 60}}

    def test_save_overwrites(self, planner_db):
        kv = SQLiteKeyValueStore(planner_db)
        kv.save("k", {"v": 1})
        kv.save("k", {"v": 2})
        assert kv.load("k", {}) == {"v": 2}
        assert kv.keys() == ["k"]

    def test_corrupt_row_returns_fallback(self, planner_db):
        planner_db.connection.execute(
            "INSERT INTO kv_entries (key, value) VALUES ('k', '{broken')"
        )
        kv = SQLiteKeyValueStore(planner_db)
        assert kv.load("k", {"default": True}) == {"default": True}

    def test_wrong_shape_returns_fallback(self, planner_db):
        kv = SQLiteKeyValueStore(planner_db)
        kv.save("k", ["not", "a", "dict"])
        assert kv.load("k", {}) == {}

    def test_uninitialized_database_falls_back(self):
        kv = SQLiteKeyValueStore(PlannerDatabase(":memory:"))
        assert kv.load("k", {"x": 1}) == {"x": 1}
        kv.save("k", {"x": 2})  # logged, not raised

    def test_satisfies_protocol(self, planner_db):
        assert isinstance(SQLiteKeyValueStore(planner_db), KeyValueStore)


class TestEncryptedStore:
    def test_values_are_encrypted_at_rest(self, planner_db, value_encryptor):
        kv = SQLiteKeyValueStore(planner_db, value_encryptor)
        kv.save("supplan:completions:v1", {"2024-01-01": {"Cena||magnesio": True}})
        row = planner_db.connection.execute(
            "SELECT value, encrypted FROM kv_entries WHERE key = ?",
            ("supplan:completions:v1",),
        ).fetchone()
        assert row["encrypted"] == 1
        assert "magnesio" not in row["value"]
        assert kv.load("supplan:completions:v1", {}) == {"2024-01-01": {"Cena||magnesio": True}}

    def test_wrong_key_returns_fallback(self, planner_db, value_encryptor):
        SQLiteKeyValueStore(planner_db, value_encryptor).save("k", {"a": 1})
        other = SQLiteKeyValueStore(planner_db, ValueEncryptor(Fernet.generate_key().decode()))
        assert other.load("k", {}) == {}

    def test_encrypted_value_without_key_returns_fallback(self, planner_db, value_encryptor):
        SQLiteKeyValueStore(planner_db, value_encryptor).save("k", {"a": 1})
        assert SQLiteKeyValueStore(planner_db).load("k", {}) == {}

    def test_plain_values_still_readable_with_key(self, planner_db, value_encryptor):
        SQLiteKeyValueStore(planner_db).save("k", {"a": 1})
        assert SQLiteKeyValueStore(planner_db, value_encryptor).load("k", {}) == {"a": 1}

    def test_encrypted_flag(self, planner_db, value_encryptor):
        assert SQLiteKeyValueStore(planner_db, value_encryptor).encrypted is True
        assert SQLiteKeyValueStore(planner_db).encrypted is False
