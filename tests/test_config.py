"""Tests for configuration validation, the error taxonomy and migrations."""

from __future__ import annotations

import pytest

from config import BaseConfig, ProductionConfig, TestingConfig
from errors import ConfigurationError, PremiumRequiredError, RateLimitedError


class TestConfigValidation:
    def test_missing_provider_key(self):
        class NoKey(BaseConfig):
            AI_PROVIDER = "claude"
            ANTHROPIC_API_KEY = ""

        assert NoKey.problems() == ["ANTHROPIC_API_KEY must be set when AI_PROVIDER=claude."]
        with pytest.raises(ConfigurationError):
            NoKey.validate()

    def test_unknown_provider(self):
        class Unknown(BaseConfig):
            AI_PROVIDER = "llama"

        assert "AI_PROVIDER must be one of" in Unknown.problems()[0]

    def test_production_requires_secret_key(self):
        class Prod(ProductionConfig):
            SECRET_KEY = "dev-key-change-in-production"
            GOOGLE_API_KEY = "g-key"
            AI_PROVIDER = "gemini"

        assert Prod.problems() == ["SECRET_KEY must be set to a secure value in production."]

    def test_healthy_config(self):
        class Ok(BaseConfig):
            AI_PROVIDER = "openai"
            OPENAI_API_KEY = "sk"

        assert Ok.problems() == []
        Ok.validate()

    def test_testing_config_never_fails(self):
        TestingConfig.validate()

    def test_get_config_fallback(self):
        import config
        assert config.get_config("staging") is config.get_config("development")
        assert config.get_config("production") is config.ProductionConfig


class TestDatabaseSetting:
    def test_database_path_read_from_database_env(self, monkeypatch, tmp_path):
        import importlib
        import config

        target = str(tmp_path / "alunos.db")
        monkeypatch.setenv("DATABASE", target)
        try:
            assert importlib.reload(config).BaseConfig.DATABASE == target
        finally:
            monkeypatch.delenv("DATABASE")
            importlib.reload(config)


class TestBoolField:
    @pytest.mark.parametrize("raw,expected", [
        (True, True), (False, False), ("true", True), ("False", False), ("0", False), ("1", True),
    ])
    def test_accepted_values(self, raw, expected):
        from helpers import bool_field
        assert bool_field({"flag": raw}, "flag") is expected

    def test_missing_uses_default(self):
        from helpers import bool_field
        assert bool_field({}, "flag") is False

    @pytest.mark.parametrize("raw", ["talvez", 1, None, [True]])
    def test_rejected_values(self, raw):
        from errors import InvalidRequestError
        from helpers import bool_field
        with pytest.raises(InvalidRequestError):
            bool_field({"flag": raw}, "flag")


class TestErrors:
    def test_premium_required_payload(self):
        err = PremiumRequiredError("o Planner Inteligente")
        assert err.status_code == 403
        assert err.to_dict() == {
            "error": "Desbloqueie o Planner Inteligente com o Nexus Pro.",
            "premium_required": True,
            "feature": "o Planner Inteligente",
        }

    def test_rate_limited_default_message(self):
        err = RateLimitedError()
        assert err.status_code == 429
        assert "Tente novamente" in err.message


class TestMigrations:
    def test_all_versions_recorded(self, db):
        versions = [r["version"] for r in db.execute("SELECT version FROM schema_version ORDER BY version")]
        assert versions == [1, 2, 3]

    def test_migrations_are_idempotent(self, app, db):
        from database import run_migrations
        run_migrations()
        count = db.execute("SELECT COUNT(*) AS cnt FROM schema_version").fetchone()["cnt"]
        assert count == 3

    def test_pool_lookup_index_exists(self, db):
        rows = db.execute("SELECT name FROM sqlite_master WHERE type='index'").fetchall()
        names = {r["name"] for r in rows}
        assert "idx_questions_pool_lookup" in names
        assert "idx_saved_questions_user" in names

    def test_xp_cannot_go_negative(self, db):
        import sqlite3
        with pytest.raises(sqlite3.IntegrityError):
            db.execute("UPDATE profiles SET xp = -5 WHERE id = 1")


class TestLogging:
    def test_xp_award_is_logged(self, app, caplog):
        import logging
        from db_stores import ProfileStoreDB

        caplog.set_level(logging.INFO, logger="nexus.gamification")
        with app.app_context():
            ProfileStoreDB(1).increment_xp(25, "pomodoro_complete")
        assert "+25 XP (pomodoro_complete) for user 1, total 25" in caplog.text

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"

    def test_json_formatter(self):
        import json
        import logging
        from logging_config import JSONFormatter

        record = logging.LogRecord("nexus", logging.INFO, __file__, 1, "Olá %s", ("Ana",), None)
        record.request_id, record.user_id = "r1", 7
        entry = json.loads(JSONFormatter().format(record))
        assert entry["msg"] == "Olá Ana"
        assert entry["user_id"] == 7
