"""
Singleton management for the AI backend and the rate limiter.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])


def ai_rate_limit() -> str:
    return current_app.config.get("AI_RATE_LIMIT", "30 per hour")


class AIManager:
    """Lazy-loaded AIBackend bound to the running app's config."""

    _backend = None

    @classmethod
    def get_backend(cls):
        if cls._backend is None:
            from ai_resilience import AIBackend
            cls._backend = AIBackend.from_config(current_app.config)
        return cls._backend

    @classmethod
    def set_backend(cls, backend) -> None:
        cls._backend = backend

    @classmethod
    def reset(cls):
        """Drop the cached backend so the next call rebuilds it from config."""
        cls._backend = None
