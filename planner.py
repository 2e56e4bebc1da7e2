"""
Weekly study planner.

generate_plan() asks the AI backend for a week of tasks; when that fails for
any reason it falls back to a fixed default week so the student always gets a
schedule. The new plan replaces every task in [today, today + days]; tasks
outside that window are left alone. The delete and the insert are two
separate store calls.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from flask import current_app

from ai_schemas import PLAN_TOOL, StudyPlanDraft
from db_stores import ProfileStoreDB, StudyTaskStoreDB
from errors import ConfigurationError, InvalidRequestError, NotFoundError, StudyAppError
from extensions import AIManager
from models import StudyTask, XP_AWARDS

logger = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = """Você é um mentor do ENEM e planejador de estudos especializado em vestibulares.
Crie um cronograma de estudos equilibrado e eficiente.
Distribua as matérias de forma inteligente ao longo dos dias.
Considere pausas e alternância entre matérias pesadas e leves.
Use day_offset para o dia da tarefa (1 = amanhã)."""

# (subject, topic) for day_offset 1..7, 60 minutes each
FALLBACK_PLAN = [
    ("Matemática", "Matemática Básica"),
    ("Natureza", "Ecologia"),
    ("Humanas", "História do Brasil"),
    ("Linguagens", "Interpretação de Texto"),
    ("Redação", "Estrutura Dissertativa"),
    ("Natureza", "Química Geral"),
    ("Matemática", "Estatística"),
]
FALLBACK_DURATION = 60


def fallback_tasks(today: date) -> list[StudyTask]:
    return [
        StudyTask(
            id="",
            subject=subject,
            topic=topic,
            date=(today + timedelta(days=offset)).isoformat(),
            duration_minutes=FALLBACK_DURATION,
        )
        for offset, (subject, topic) in enumerate(FALLBACK_PLAN, start=1)
    ]


class StudyPlanner:

    def __init__(self, user_id: int, ai=None) -> None:
        self.user_id = user_id
        self._ai = ai
        self.store = StudyTaskStoreDB(user_id)

    @property
    def ai(self):
        return self._ai or AIManager.get_backend()

    @staticmethod
    def window(today: date | None = None, days: int | None = None) -> tuple[str, str]:
        today = today or date.today()
        days = days if days is not None else current_app.config.get("PLAN_DAYS", 7)
        return today.isoformat(), (today + timedelta(days=days)).isoformat()

    def week(self, today: date | None = None) -> list[StudyTask]:
        start, end = self.window(today)
        return self.store.in_range(start, end)

    def _ai_tasks(self, hours_per_day: float, focus: str, weakness: str,
                  days: int, today: date) -> list[StudyTask]:
        user_message = (
            f"Crie um plano de estudos de {days} dias focado em: {focus or 'Geral'}.\n"
            f"Horas disponíveis por dia: {hours_per_day}\n"
        )
        if weakness:
            user_message += f"Considere estas dificuldades: {weakness}\n"
        user_message += f"Use day_offset de 1 a {days}."

        draft: StudyPlanDraft = self.ai.structured(
            [
                {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            PLAN_TOOL,
        )
        return [
            StudyTask(
                id="",
                subject=t.subject,
                topic=t.topic,
                date=(today + timedelta(days=t.day_offset or 1)).isoformat(),
                duration_minutes=t.duration_minutes,
            )
            for t in draft.tasks
            if (t.day_offset or 1) <= days
        ]

    def generate_plan(self, hours_per_day: float = 4, focus: str = "", weakness: str = "",
                      days: int | None = None, today: date | None = None) -> tuple[list[StudyTask], bool]:
        """Build and store a new plan. Returns (tasks, used_fallback)."""
        today = today or date.today()
        days = days if days is not None else current_app.config.get("PLAN_DAYS", 7)
        if not 0 < hours_per_day <= 24:
            raise InvalidRequestError("As horas por dia devem ser maiores que 0 e no máximo 24.")

        used_fallback = False
        try:
            tasks = self._ai_tasks(hours_per_day, focus, weakness, days, today)
            if not tasks:
                raise InvalidRequestError("plano vazio")
        except ConfigurationError:
            raise
        except StudyAppError as exc:
            logger.warning("AI plan generation failed (%s), using default week", exc.message)
            tasks = fallback_tasks(today)
            used_fallback = True

        start, end = self.window(today, days)
        removed = self.store.delete_range(start, end)
        self.store.add_many(tasks)
        logger.info("Replaced %d task(s) in %s..%s with %d new for user %s",
                    removed, start, end, len(tasks), self.user_id)
        return tasks, used_fallback

    def toggle_task(self, task_id: str) -> dict:
        """Flip completion; finishing a task earns XP."""
        task = self.store.get(task_id)
        if task is None:
            raise NotFoundError("Tarefa não encontrada.")
        is_done = not task.is_done
        self.store.set_done(task_id, is_done)
        result = {"id": task_id, "is_done": is_done, "xp_earned": 0}
        if is_done:
            amount = XP_AWARDS["complete_planner_task"]
            result["total_xp"] = ProfileStoreDB(self.user_id).increment_xp(amount, "complete_planner_task")
            result["xp_earned"] = amount
        return result
