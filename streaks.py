"""
Daily study streak.

A streak counts consecutive calendar days with recorded study activity.
Recording activity on the same day twice is a no-op; activity on the day
after the last one extends the streak; anything else starts over at 1.
Reads apply the lazy reset: more than one day without activity means 0.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta

from db_stores import ProfileStoreDB
from models import UserProfile
from signals import streak_changed

logger = logging.getLogger(__name__)


def _as_date(value: str | date | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def next_streak(streak_count: int, last_activity_date: str | date | None,
                today: date) -> tuple[int, bool]:
    """Return (new_count, changed) for activity recorded on ``today``."""
    last = _as_date(last_activity_date)
    if last == today:
        return streak_count, False
    if last == today - timedelta(days=1):
        return streak_count + 1, True
    return 1, True


def is_broken(last_activity_date: str | date | None, today: date) -> bool:
    """True when more than one calendar day passed since the last activity."""
    last = _as_date(last_activity_date)
    return last is not None and (today - last).days > 1


def reconcile_streak(profile: UserProfile, today: date | None = None) -> UserProfile:
    """Profile with the lazy reset applied (streak 0 after a missed day)."""
    today = today or date.today()
    if profile.streak_count > 0 and is_broken(profile.last_activity_date, today):
        return replace(profile, streak_count=0)
    return profile


def update_streak(user_id: int, today: date | None = None) -> int:
    """Record study activity for today and return the resulting streak.

    Persistence is best effort: a failed write is logged and the computed
    value is still returned. A failed profile read returns 0.
    """
    today = today or date.today()
    store = ProfileStoreDB(user_id)
    try:
        profile = store.load()
    except Exception:
        logger.exception("Could not read profile %s for streak update", user_id)
        return 0
    if profile is None:
        logger.warning("No profile for user %s, streak not updated", user_id)
        return 0

    new_count, changed = next_streak(profile.streak_count, profile.last_activity_date, today)
    if not changed:
        return new_count

    try:
        store.update_fields(streak_count=new_count, last_activity_date=today.isoformat())
    except Exception:
        logger.exception("Could not persist streak %d for user %s", new_count, user_id)
        return new_count

    streak_changed.send(store, user_id=user_id, streak=new_count, previous=profile.streak_count)
    return new_count
