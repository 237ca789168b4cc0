"""Tests for settings defaults and the server's bind guard."""

from __future__ import annotations

import pytest

from supplan.core.config.settings import Settings, get_settings
from supplan.core.server import main
from supplan.core.server.main import _is_loopback_host, describe_storage, startup_summary


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("DB_PATH", "COMPLETION_POLICY", "SHOW_OFF_ITEMS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.supplan_host == "127.0.0.1"
        assert settings.supplan_port == 8011
        assert settings.db_path == "~/.supplan/planner.db"
        assert settings.completion_policy == "default_incomplete"
        assert settings.show_off_items is False
        assert settings.supplan_allow_insecure_bind is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("COMPLETION_POLICY", "default_complete")
        monkeypatch.setenv("SUPPLAN_PORT", "9000")
        settings = get_settings()
        assert settings.completion_policy == "default_complete"
        assert settings.supplan_port == 9000


class TestBindGuard:
    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1", "127.0.0.2"])
    def test_loopback_hosts(self, host):
        assert _is_loopback_host(host)

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.com"])
    def test_other_hosts(self, host):
        assert not _is_loopback_host(host)

    def test_refuses_public_bind(self, monkeypatch):
        monkeypatch.setenv("SUPPLAN_HOST", "0.0.0.0")
        monkeypatch.setattr(main, "create_app", lambda: pytest.fail("server must not be created"))
        with pytest.raises(RuntimeError, match="non-loopback"):
            main.run()


class TestStartupSummary:
    def test_memory_storage(self):
        settings = Settings(_env_file=None, db_path=":memory:")
        assert describe_storage(settings) == "in-memory (lost on restart)"

    def test_file_storage_reports_encryption(self):
        plain = Settings(_env_file=None, db_path="/tmp/planner.db", encryption_key="")
        sealed = Settings(_env_file=None, db_path="/tmp/planner.db", encryption_key="k")
        assert describe_storage(plain) == "/tmp/planner.db (plain JSON)"
        assert describe_storage(sealed) == "/tmp/planner.db (encrypted)"

    def test_summary_names_policy_and_variant(self, monkeypatch):
        monkeypatch.setenv("COMPLETION_POLICY", "default_complete")
        monkeypatch.setenv("DEFAULT_MEAL_VARIANT", "2 comidas")
        summary = startup_summary(get_settings())
        assert "completion_policy=default_complete" in summary
        assert "default_variant='2 comidas'" in summary
        assert "templates=packaged catalog" in summary

    def test_run_logs_summary_and_serves(self, monkeypatch, caplog):
        calls = []

        class _Server:
            def run(self, **kwargs):
                calls.append(kwargs)

        monkeypatch.setattr(main, "create_app", lambda: _Server())
        with caplog.at_level("INFO", logger="supplan.core.server.main"):
            main.run()
        assert calls == [{"transport": "streamable-http", "host": "127.0.0.1", "port": 8011}]
        assert "storage=in-memory (lost on restart)" in caplog.text
