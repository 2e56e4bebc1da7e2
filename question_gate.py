"""
Question Lab: pooled questions first, AI generation on a miss.

QuestionCacheGate.get_questions() serves one random question from the
shared pool when subject + topic + difficulty already has entries, and
otherwise asks the AI backend for a new one, validates it against
QuestionContent, stores it in the pool for the next student and returns it.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from typing import Any, Optional

from flask import current_app
from pydantic import ValidationError

from ai_schemas import QUESTION_TOOL, QuestionBatch, QuestionContent
from db_stores import ProfileStoreDB, QuestionPoolDB, SavedQuestionStoreDB
from errors import GenerationError, InvalidRequestError, NotFoundError, RateLimitedError, AIServiceError
from extensions import AIManager
from models import DIFFICULTIES, XP_AWARDS
from streaks import update_streak

logger = logging.getLogger(__name__)


HARD_INSTRUCTIONS = """NÍVEL DIFÍCIL (HIGH STAKES / MEDICINA):
- Utilize textos-base longos e complexos (artigos científicos, literatura clássica, dados estatísticos).
- A questão deve exigir INTERDISCIPLINARIDADE (ex: Biologia com Química, História com Sociologia).
- As alternativas incorretas (distratores) devem ser muito plausíveis, exigindo precisão conceitual.
- Exija raciocínio lógico avançado e análise crítica, não apenas memorização.
- Evite perguntas diretas ("O que é X?"). Prefira situações-problema."""

STANDARD_INSTRUCTIONS = """NÍVEL PADRÃO (ENEM / VESTIBULAR):
- Foco em interpretação de texto e aplicação de conceitos em situações do cotidiano.
- Dificuldade balanceada para o aluno médio.
- Contextualize a questão (situação prática)."""

QUESTION_SYSTEM_PROMPT = """Atue como um elaborador sênior do INEP (Brasil).

REGRAS OBRIGATÓRIAS:
1. Idioma: Português do Brasil.
2. Estrutura: Texto-base obrigatório + Enunciado/Comando + 5 alternativas.
3. O texto-base deve ser rico e não apenas uma frase solta.
4. As opções ("options") contêm APENAS o texto da resposta, sem "A)", "B)", "a." etc.
5. A resposta correta ("correctAnswer") é o índice numérico (0 para A, 1 para B, ...).
6. Forneça uma explicação detalhada e educativa."""


def build_question_messages(subject: str, topic: str, difficulty: str) -> list[dict]:
    level = HARD_INSTRUCTIONS if difficulty == "hard" else STANDARD_INSTRUCTIONS
    return [
        {"role": "system", "content": QUESTION_SYSTEM_PROMPT},
        {"role": "user", "content": (
            f'Crie UMA questão de múltipla escolha INÉDITA sobre "{topic}" ({subject}).\n\n'
            f"INSTRUÇÕES DE DIFICULDADE:\n{level}"
        )},
    ]


def normalize_content(content: Any) -> Optional[QuestionContent]:
    """Pool rows hold either one question object or a list of them (first wins)."""
    if isinstance(content, list):
        if not content:
            return None
        content = content[0]
    if not isinstance(content, dict):
        return None
    try:
        return QuestionContent.model_validate(content)
    except ValidationError:
        return None


class QuestionCacheGate:

    def __init__(self, ai=None, pool: QuestionPoolDB | None = None, rng=None):
        self._ai = ai
        self.pool = pool or QuestionPoolDB()
        self.rng = rng or random

    @property
    def ai(self):
        return self._ai or AIManager.get_backend()

    def get_questions(self, subject: str, topic: str, difficulty: str = "medium",
                      user_id: int | None = None, bypass_cache: bool = False) -> list[QuestionContent]:
        questions, _ = self.fetch(subject, topic, difficulty, user_id, bypass_cache)
        return questions

    def fetch(self, subject: str, topic: str, difficulty: str = "medium",
              user_id: int | None = None, bypass_cache: bool = False) -> tuple[list[QuestionContent], str]:
        """Like get_questions(), also reporting where the questions came from ("pool" or "ai")."""
        subject, topic = (subject or "").strip(), (topic or "").strip()
        if not subject or not topic:
            raise InvalidRequestError("Informe a matéria e o tópico.")
        if difficulty not in DIFFICULTIES:
            raise InvalidRequestError(f"Dificuldade inválida: {difficulty}")

        if not bypass_cache:
            cached = self._from_pool(subject, topic, difficulty)
            if cached is not None:
                return [cached], "pool"

        questions = self._generate(subject, topic, difficulty)
        if user_id is not None:
            self._persist(questions, subject, topic, difficulty, user_id)
        return questions, "ai"

    def _from_pool(self, subject: str, topic: str, difficulty: str) -> Optional[QuestionContent]:
        limit = current_app.config.get("QUESTION_CACHE_LIMIT", 5)
        try:
            rows = self.pool.find(subject, topic, difficulty, limit=limit)
        except Exception:
            logger.warning("Question pool lookup failed for %s/%s, generating instead",
                           subject, topic, exc_info=True)
            return None

        matches = []
        for row in rows:
            question = normalize_content(row.content)
            if question is None:
                logger.warning("Skipping malformed pool question id=%s", row.id)
                continue
            matches.append(question)
        if not matches:
            return None
        logger.info("Pool hit for %s/%s/%s (%d candidates)", subject, topic, difficulty, len(matches))
        return self.rng.choice(matches)

    def _generate(self, subject: str, topic: str, difficulty: str) -> list[QuestionContent]:
        messages = build_question_messages(subject, topic, difficulty)
        try:
            batch: QuestionBatch = self.ai.structured(messages, QUESTION_TOOL)
        except RateLimitedError:
            raise
        except AIServiceError as exc:
            raise GenerationError(f"Falha ao gerar questões: {exc.message}") from exc
        return batch.questions

    def _persist(self, questions: list[QuestionContent], subject: str, topic: str,
                 difficulty: str, user_id: int) -> None:
        content = [q.to_content() for q in questions]
        try:
            self.pool.add(subject, topic, difficulty, content, created_by=user_id, is_public=True)
        except Exception:
            logger.error("Could not save generated question for %s/%s to the pool",
                         subject, topic, exc_info=True)

    def search_bank(self, subject: str, topic: str = "") -> QuestionContent:
        """Random question from the pool by subject, topic matched as a substring."""
        subject = (subject or "").strip()
        if not subject:
            raise InvalidRequestError("Informe a matéria.")
        limit = current_app.config.get("QUESTION_BANK_LIMIT", 20)
        rows = self.pool.search(subject, (topic or "").strip(), limit=limit)
        matches = [q for q in (normalize_content(r.content) for r in rows) if q is not None]
        if not matches:
            raise NotFoundError("Nenhuma questão encontrada no banco para esse filtro.")
        return self.rng.choice(matches)


def answer_question(user_id: int, question: QuestionContent, selected: int,
                    subject: str = "", topic: str = "", save: bool = False,
                    today: date | None = None) -> dict:
    """Check an answer; a correct one counts as study activity and earns XP."""
    if not 0 <= selected < len(question.options):
        raise InvalidRequestError("Alternativa inválida.")
    correct = selected == question.correct_answer
    result = {
        "correct": correct,
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "xp_earned": 0,
    }
    if correct:
        result["streak"] = update_streak(user_id, today)
        amount = XP_AWARDS["correct_answer"]
        result["total_xp"] = ProfileStoreDB(user_id).increment_xp(amount, "correct_answer")
        result["xp_earned"] = amount
    if save:
        saved = SavedQuestionStoreDB(user_id).save(question.to_content(), subject, topic, correct)
        result["saved_id"] = saved.id
    return result
