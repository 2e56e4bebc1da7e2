"""
Write-through cache for student profiles.

Profile reads go through ProfileCache.get(), which applies the lazy streak
reset and writes it through to the store before returning. If that write
fails the derived profile is still returned (the reset is a pure function of
last_activity_date) and the entry is dropped, so the next read derives the
same value again and retries the write. Entries are invalidated whenever
the profile_updated signal fires for the user, and expire after ttl seconds
so writes made by other worker processes are picked up.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import date
from typing import Optional

from flask import current_app

from db_stores import ProfileStoreDB
from models import UserProfile
from signals import profile_updated
from streaks import reconcile_streak

logger = logging.getLogger(__name__)


class ProfileCache:

    DEFAULT_TTL = 30

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._entries: dict[int, tuple[UserProfile, float]] = {}  # user_id -> (profile, expires_at)
        self._lock = threading.Lock()

    def get(self, user_id: int, today: date | None = None) -> Optional[UserProfile]:
        profile = self._lookup(user_id)
        if profile is None:
            profile = ProfileStoreDB(user_id).load()
            if profile is None:
                return None

        reconciled = reconcile_streak(profile, today)
        if reconciled.streak_count != profile.streak_count:
            try:
                ProfileStoreDB(user_id).update_fields(streak_count=reconciled.streak_count)
            except Exception:
                logger.warning("Streak reset for user %s not persisted, will retry on next read",
                               user_id, exc_info=True)
                self.invalidate(user_id)
                return reconciled

        with self._lock:
            self._entries[user_id] = (reconciled, time.monotonic() + self.ttl)
        return reconciled

    def _lookup(self, user_id: int) -> Optional[UserProfile]:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            profile, expires_at = entry
            if time.monotonic() > expires_at:
                del self._entries[user_id]
                return None
            return profile

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, user_id: int) -> bool:
        return self._lookup(user_id) is not None

    def _on_profile_updated(self, sender, user_id: int, **kwargs) -> None:
        self.invalidate(user_id)


def init_app(app) -> ProfileCache:
    cache = ProfileCache(ttl=app.config.get("PROFILE_CACHE_TTL", ProfileCache.DEFAULT_TTL))
    app.extensions["profile_cache"] = cache
    # weak reference to the bound method; the app keeps the cache alive
    profile_updated.connect(cache._on_profile_updated)
    return cache


def get_profile_cache() -> ProfileCache:
    return current_app.extensions["profile_cache"]


def load_profile(user_id: int, today: date | None = None) -> Optional[UserProfile]:
    return get_profile_cache().get(user_id, today)
