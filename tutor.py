"""
AI Tutor: free-form questions answered in the context of the lesson.

Keeps the conversation history supplied by the client and adds the
optional study context to the student's latest question.
"""

from __future__ import annotations

import logging

from errors import AIServiceError, ConfigurationError, InvalidRequestError
from extensions import AIManager

logger = logging.getLogger(__name__)

TUTOR_SYSTEM_PROMPT = """Você é um tutor educacional especializado em ajudar estudantes de vestibular.
Responda de forma clara, didática e completa.
Use formatação Markdown para melhorar a legibilidade.
Se relevante, dê exemplos práticos e analogias para facilitar o entendimento."""

FALLBACK_ANSWER = "Desculpe, não consegui processar sua pergunta."

# Only the most recent turns are forwarded
MAX_HISTORY = 20


class TutorSession:
    """One tutoring conversation, history owned by the caller."""

    def __init__(self, ai=None):
        self._ai = ai

    @property
    def ai(self):
        return self._ai or AIManager.get_backend()

    @staticmethod
    def build_messages(question: str, context: str = "", history: list[dict] | None = None) -> list[dict]:
        messages = [{"role": "system", "content": TUTOR_SYSTEM_PROMPT}]
        for turn in (history or [])[-MAX_HISTORY:]:
            role = turn.get("role")
            content = (turn.get("content") or "").strip()
            if role in ("user", "assistant") and content:
                messages.append({"role": role, "content": content})
        if context:
            messages.append({"role": "user", "content": f"Contexto:\n{context}\n\nPergunta: {question}"})
        else:
            messages.append({"role": "user", "content": question})
        return messages

    def respond(self, question: str, context: str = "", history: list[dict] | None = None) -> str:
        question = (question or "").strip()
        if not question:
            raise InvalidRequestError("Escreva sua pergunta.")
        try:
            answer = self.ai.complete(self.build_messages(question, context, history))
        except ConfigurationError:
            raise
        except AIServiceError as exc:
            logger.warning("Tutor answer failed: %s", exc.message)
            return FALLBACK_ANSWER
        return answer.strip() or FALLBACK_ANSWER
