"""
Application configuration: environment-aware settings.

All environment variables are documented here. A local .env file is loaded
with python-dotenv before the classes are evaluated.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv()

BASE_DIR = Path(__file__).parent

PROVIDER_KEY_SETTINGS = {
    "gemini": "GOOGLE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
}

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "claude": "claude-sonnet-4-20250514",
}


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # SQLite file path
    DATABASE = os.environ.get("DATABASE", str(BASE_DIR / "nexus_study.db"))

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400

    # AI backend
    AI_PROVIDER = os.environ.get("AI_PROVIDER", "gemini")
    AI_MODEL = os.environ.get("AI_MODEL", "") or DEFAULT_MODELS.get(AI_PROVIDER, "")
    # OpenAI-compatible gateway (optional)
    AI_BASE_URL = os.environ.get("AI_BASE_URL", "")
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (in-memory unless a storage URI is given)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "") or "memory://"
    AI_RATE_LIMIT = os.environ.get("AI_RATE_LIMIT", "30 per hour")

    # Seconds a cached profile is served before re-reading the row
    PROFILE_CACHE_TTL = int(os.environ.get("PROFILE_CACHE_TTL", "30"))

    # Study rules
    QUESTION_CACHE_LIMIT = 5
    QUESTION_BANK_LIMIT = 20
    ESSAY_HISTORY_LIMIT = 5
    ESSAY_MIN_LENGTH = 100
    PLAN_DAYS = 7
    FLASHCARD_BATCH_SIZE = 5

    @classmethod
    def problems(cls) -> list[str]:
        """Return every configuration problem found, empty when healthy."""
        errors: list[str] = []
        key_setting = PROVIDER_KEY_SETTINGS.get(cls.AI_PROVIDER)
        if key_setting is None:
            errors.append(
                f"AI_PROVIDER must be one of {', '.join(sorted(PROVIDER_KEY_SETTINGS))} "
                f"(got {cls.AI_PROVIDER!r})."
            )
        elif not getattr(cls, key_setting):
            errors.append(f"{key_setting} must be set when AI_PROVIDER={cls.AI_PROVIDER}.")
        return errors

    @classmethod
    def validate(cls):
        """Fail fast on missing configuration."""
        errors = cls.problems()
        if errors:
            raise ConfigurationError(
                "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def problems(cls) -> list[str]:
        errors = super().problems()
        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")
        return errors


class TestingConfig(BaseConfig):
    TESTING = True
    AI_PROVIDER = "gemini"
    AI_MODEL = "gemini-2.5-flash"

    @classmethod
    def validate(cls):
        pass


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(env: str | None = None):
    env = env or os.environ.get("FLASK_ENV", "development")
    return config_by_name.get(env, config_by_name["development"])


if __name__ == "__main__":
    cfg = get_config()
    issues = cfg.problems()
    if issues:
        print(f"[config] {cfg.__name__}: invalid configuration", file=sys.stderr)
        for issue in issues:
            print(f"  - {issue}", file=sys.stderr)
        sys.exit(1)
    print(f"[config] {cfg.__name__}: OK (provider={cfg.AI_PROVIDER}, model={cfg.AI_MODEL})")
