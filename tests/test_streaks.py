"""Tests for the daily study streak."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

from db_stores import ProfileStoreDB
from models import UserProfile
from signals import streak_changed
from streaks import is_broken, next_streak, reconcile_streak, update_streak

TODAY = date(2026, 3, 10)


class TestNextStreak:
    def test_same_day_is_unchanged(self):
        assert next_streak(4, "2026-03-10", TODAY) == (4, False)

    def test_yesterday_extends(self):
        assert next_streak(4, "2026-03-09", TODAY) == (5, True)

    def test_gap_starts_over(self):
        assert next_streak(12, "2026-03-07", TODAY) == (1, True)

    def test_first_activity_ever(self):
        assert next_streak(0, None, TODAY) == (1, True)

    def test_accepts_timestamps(self):
        assert next_streak(2, "2026-03-09T23:59:00", TODAY) == (3, True)

    def test_month_boundary(self):
        assert next_streak(3, "2026-02-28", date(2026, 3, 1)) == (4, True)


class TestBrokenStreak:
    def test_one_day_gap_is_not_broken(self):
        assert not is_broken("2026-03-09", TODAY)

    def test_two_day_gap_is_broken(self):
        assert is_broken("2026-03-08", TODAY)

    def test_no_activity_is_not_broken(self):
        assert not is_broken(None, TODAY)

    def test_reconcile_zeroes_broken_streak(self):
        profile = UserProfile(id=1, streak_count=9, last_activity_date="2026-03-01")
        reconciled = reconcile_streak(profile, TODAY)
        assert reconciled.streak_count == 0
        assert reconciled.last_activity_date == "2026-03-01"
        assert profile.streak_count == 9  # original untouched

    def test_reconcile_keeps_live_streak(self):
        profile = UserProfile(id=1, streak_count=9, last_activity_date="2026-03-09")
        assert reconcile_streak(profile, TODAY) is profile


class TestUpdateStreak:
    def test_first_activity_sets_one(self, app):
        with app.app_context():
            assert update_streak(1, TODAY) == 1
            profile = ProfileStoreDB(1).load()
            assert profile.streak_count == 1
            assert profile.last_activity_date == "2026-03-10"

    def test_consecutive_days(self, app):
        with app.app_context():
            update_streak(1, date(2026, 3, 8))
            update_streak(1, date(2026, 3, 9))
            assert update_streak(1, TODAY) == 3

    def test_same_day_twice_is_idempotent(self, app):
        with app.app_context():
            update_streak(1, date(2026, 3, 9))
            assert update_streak(1, TODAY) == 2
            assert update_streak(1, TODAY) == 2
            assert ProfileStoreDB(1).load().streak_count == 2

    def test_gap_resets_to_one_then_same_day_unchanged(self, app):
        with app.app_context():
            ProfileStoreDB(1).update_fields(streak_count=7, last_activity_date="2026-03-05")
            assert update_streak(1, TODAY) == 1
            assert update_streak(1, TODAY) == 1

    def test_missing_profile_returns_zero(self, app):
        with app.app_context():
            assert update_streak(999, TODAY) == 0

    def test_read_failure_returns_zero(self, app):
        with app.app_context():
            with patch.object(ProfileStoreDB, "load", side_effect=RuntimeError("db down")):
                assert update_streak(1, TODAY) == 0

    def test_write_failure_still_returns_computed_value(self, app):
        with app.app_context():
            ProfileStoreDB(1).update_fields(streak_count=3, last_activity_date="2026-03-09")
            with patch.object(ProfileStoreDB, "update_fields", side_effect=RuntimeError("locked")):
                assert update_streak(1, TODAY) == 4
            assert ProfileStoreDB(1).load().streak_count == 3

    def test_sends_streak_changed(self, app):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs)

        streak_changed.connect(listener)
        try:
            with app.app_context():
                update_streak(1, TODAY)
                update_streak(1, TODAY)
        finally:
            streak_changed.disconnect(listener)

        assert received == [{"user_id": 1, "streak": 1, "previous": 0}]
