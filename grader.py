"""
Essay Correction: ENEM Competency Grader

Sends the student's essay to the AI backend with an ENEM corrector persona
that scores the five official competencies (0-200 each) and returns
structured feedback. Only the five most recent essays are kept per student.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from flask import current_app

from ai_schemas import ESSAY_TOOL, EssayEvaluation
from db_stores import EssayStoreDB
from errors import InvalidRequestError
from extensions import AIManager
from models import COMPETENCIES, EssayRecord
from streaks import update_streak

logger = logging.getLogger(__name__)

ENEM_CORRECTOR_SYSTEM_PROMPT = """Você é um corretor de redações do ENEM especializado.
Avalie a redação nas 5 competências:
- C1: Domínio da norma culta da língua escrita
- C2: Compreensão da proposta e aplicação de conceitos (tema e repertório)
- C3: Seleção, organização e interpretação de informações em defesa de um ponto de vista
- C4: Conhecimento dos mecanismos linguísticos de coesão
- C5: Proposta de intervenção (agente, ação, meio/modo, efeito e detalhamento)

Para cada competência, dê uma nota de 0 a 200 (múltiplos de 40) e um feedback específico.
Calcule a nota total (soma das 5 competências, máximo 1000).
Liste também sugestões objetivas de melhoria ("melhorias")."""


@dataclass
class EssayResult:
    score: int
    competencies: dict
    general_feedback: str
    improvements: list[str] = field(default_factory=list)
    essay_id: int | None = None
    streak: int = 0

    @property
    def feedback(self) -> dict:
        """Shape stored in essays.feedback."""
        return {
            "competencies": self.competencies,
            "general_feedback": self.general_feedback,
            "improvements": self.improvements,
        }

    def to_dict(self) -> dict:
        return {
            "essay_id": self.essay_id,
            "score": self.score,
            "competencies": self.competencies,
            "general_feedback": self.general_feedback,
            "improvements": self.improvements,
            "streak": self.streak,
        }


class EssayGrader:
    """Grades essays and keeps the short correction history."""

    def __init__(self, user_id: int, ai=None) -> None:
        self.user_id = user_id
        self._ai = ai
        self.store = EssayStoreDB(user_id)

    @property
    def ai(self):
        return self._ai or AIManager.get_backend()

    def evaluate(self, content: str, theme: str = "") -> EssayResult:
        """Score an essay without touching storage."""
        min_length = current_app.config.get("ESSAY_MIN_LENGTH", 100)
        content = (content or "").strip()
        if len(content) < min_length:
            raise InvalidRequestError(f"A redação deve ter pelo menos {min_length} caracteres.")

        user_message = f"Tema: {theme}\n\nRedação:\n{content}" if theme else f"Redação:\n{content}"
        evaluation: EssayEvaluation = self.ai.structured(
            [
                {"role": "system", "content": ENEM_CORRECTOR_SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            ESSAY_TOOL,
        )
        if evaluation.score is not None and evaluation.score != evaluation.total:
            logger.info("Essay total reported as %s, competencies add up to %s",
                        evaluation.score, evaluation.total)

        comps = evaluation.competencies.model_dump()
        return EssayResult(
            score=evaluation.total,
            competencies={c: comps[c] for c in COMPETENCIES},
            general_feedback=evaluation.general_feedback,
            improvements=list(evaluation.improvements),
        )

    def correct(self, content: str, theme: str = "", today: date | None = None) -> EssayResult:
        """Evaluate, count the activity toward the streak, store, and trim history."""
        result = self.evaluate(content, theme)
        result.streak = update_streak(self.user_id, today)

        record = self.store.add(content.strip(), result.score, result.feedback, theme=theme)
        result.essay_id = record.id

        keep = current_app.config.get("ESSAY_HISTORY_LIMIT", 5)
        removed = self.store.prune(keep)
        if removed:
            logger.info("Pruned %d old essay(s) for user %s", removed, self.user_id)
        return result

    def history(self) -> list[EssayRecord]:
        return self.store.recent(current_app.config.get("ESSAY_HISTORY_LIMIT", 5))
