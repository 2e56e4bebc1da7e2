"""Tests for the weekly study planner."""

from __future__ import annotations

from datetime import date

import pytest

from db_stores import ProfileStoreDB, StudyTaskStoreDB
from errors import AIServiceError, ConfigurationError, InvalidRequestError, NotFoundError
from models import StudyTask
from planner import FALLBACK_PLAN, StudyPlanner, fallback_tasks

TODAY = date(2026, 7, 6)


def _plan(*offsets):
    return {"tasks": [
        {"day_offset": off, "subject": "Matemática", "topic": f"Tópico {off}", "duration_minutes": 90}
        for off in offsets
    ]}


class TestFallback:
    def test_default_week(self):
        tasks = fallback_tasks(TODAY)
        assert len(tasks) == len(FALLBACK_PLAN) == 7
        assert tasks[0].date == "2026-07-07"
        assert tasks[-1].date == "2026-07-13"
        assert all(t.duration_minutes == 60 for t in tasks)


class TestGeneratePlan:
    def test_ai_plan_is_stored(self, app, fake_ai):
        fake_ai.queue("create_schedule", _plan(1, 2, 3))
        with app.app_context():
            tasks, used_fallback = StudyPlanner(1).generate_plan(3, focus="Medicina", today=TODAY)
            assert not used_fallback
            assert [t.date for t in tasks] == ["2026-07-07", "2026-07-08", "2026-07-09"]
            stored = StudyTaskStoreDB(1).all()
            assert len(stored) == 3
            assert all(t.id for t in stored)
        _, messages = fake_ai.calls[0]
        assert "Medicina" in messages[1]["content"]

    def test_offsets_beyond_window_dropped(self, app, fake_ai):
        fake_ai.queue("create_schedule", _plan(0, 7, 9))
        with app.app_context():
            tasks, _ = StudyPlanner(1).generate_plan(today=TODAY)
        assert [t.date for t in tasks] == ["2026-07-07", "2026-07-13"]

    def test_ai_failure_falls_back_to_default_week(self, app, fake_ai):
        fake_ai.queue("create_schedule", AIServiceError("503 overloaded"))
        with app.app_context():
            tasks, used_fallback = StudyPlanner(1).generate_plan(today=TODAY)
            assert used_fallback
            assert [(t.subject, t.topic) for t in tasks] == FALLBACK_PLAN
            assert len(StudyTaskStoreDB(1).all()) == 7

    def test_malformed_plan_falls_back(self, app, fake_ai):
        fake_ai.queue("create_schedule", {"tasks": [{"subject": "Física"}]})
        with app.app_context():
            _, used_fallback = StudyPlanner(1).generate_plan(today=TODAY)
        assert used_fallback

    def test_missing_configuration_is_not_masked(self, app, fake_ai):
        fake_ai.queue("create_schedule", ConfigurationError("sem chave"))
        with app.app_context():
            with pytest.raises(ConfigurationError):
                StudyPlanner(1).generate_plan(today=TODAY)
            assert StudyTaskStoreDB(1).all() == []

    def test_replaces_only_tasks_inside_window(self, app, fake_ai):
        fake_ai.queue("create_schedule", _plan(1))
        with app.app_context():
            store = StudyTaskStoreDB(1)
            store.add_many([
                StudyTask(id="", subject="Velha", topic="antes", date="2026-07-05"),
                StudyTask(id="", subject="Velha", topic="hoje", date="2026-07-06"),
                StudyTask(id="", subject="Velha", topic="fim", date="2026-07-13"),
                StudyTask(id="", subject="Velha", topic="depois", date="2026-07-14"),
            ])
            StudyPlanner(1).generate_plan(today=TODAY)
            remaining = {(t.subject, t.topic) for t in store.all()}
        assert remaining == {("Velha", "antes"), ("Velha", "depois"), ("Matemática", "Tópico 1")}

    @pytest.mark.parametrize("hours", [0, -1, 25])
    def test_hours_out_of_range(self, app, fake_ai, hours):
        with app.app_context():
            with pytest.raises(InvalidRequestError):
                StudyPlanner(1).generate_plan(hours, today=TODAY)
        assert fake_ai.calls == []


class TestToggleTask:
    def test_completing_awards_xp_once_per_completion(self, app):
        with app.app_context():
            task = StudyTaskStoreDB(1).add_many([
                StudyTask(id="", subject="Física", topic="Cinemática", date="2026-07-07"),
            ])[0]
            planner = StudyPlanner(1)

            done = planner.toggle_task(task.id)
            assert done["is_done"] is True
            assert done["xp_earned"] == 10

            undone = planner.toggle_task(task.id)
            assert undone["is_done"] is False
            assert undone["xp_earned"] == 0
            assert ProfileStoreDB(1).load().xp == 10

    def test_unknown_task(self, app):
        with app.app_context():
            with pytest.raises(NotFoundError):
                StudyPlanner(1).toggle_task("nope")


class TestWeek:
    def test_lists_window(self, app):
        with app.app_context():
            StudyTaskStoreDB(1).add_many([
                StudyTask(id="", subject="A", topic="", date="2026-07-06"),
                StudyTask(id="", subject="B", topic="", date="2026-07-20"),
            ])
            assert [t.subject for t in StudyPlanner(1).week(TODAY)] == ["A"]
