"""AI flashcard generation into one of the student's decks."""

from __future__ import annotations

import logging
from datetime import date

from ai_schemas import FLASHCARD_TOOL, FlashcardBatch
from db_stores import FlashcardDeckDB
from errors import InvalidRequestError
from extensions import AIManager
from models import DEFAULT_DECK, FLASHCARD_SUBJECTS, Flashcard

logger = logging.getLogger(__name__)

FLASHCARD_SYSTEM_PROMPT = """Você é um especialista em criar flashcards educacionais para estudantes de vestibular.
Crie flashcards claros, concisos e educativos sobre o tema solicitado.
Cada flashcard deve ter uma pergunta/conceito na frente e a resposta/explicação no verso."""

MAX_CARDS_PER_REQUEST = 20


def generate_flashcards(user_id: int, topic: str, subject: str = DEFAULT_DECK,
                        count: int = 5, ai=None, today: date | None = None) -> list[Flashcard]:
    """Ask the AI for ``count`` cards on ``topic`` and add them, due today, to ``subject``."""
    topic = (topic or "").strip()
    if not topic:
        raise InvalidRequestError("Informe o tema dos flashcards.")
    if subject not in FLASHCARD_SUBJECTS:
        raise InvalidRequestError(f"Matéria inválida: {subject}")
    if not 1 <= count <= MAX_CARDS_PER_REQUEST:
        raise InvalidRequestError(f"Quantidade deve ser entre 1 e {MAX_CARDS_PER_REQUEST}.")

    ai = ai or AIManager.get_backend()
    batch: FlashcardBatch = ai.structured(
        [
            {"role": "system", "content": FLASHCARD_SYSTEM_PROMPT},
            {"role": "user", "content": f"Crie {count} flashcards sobre: {topic}"},
        ],
        FLASHCARD_TOOL,
    )

    due = (today or date.today()).isoformat()
    cards = [
        Flashcard(id="", front=draft.front.strip(), back=draft.back.strip(), subject=subject,
                  interval_days=1, next_review=due, created_at="")
        for draft in batch.flashcards[:count]
    ]
    FlashcardDeckDB(user_id).add_many(cards)
    logger.info("Added %d AI flashcard(s) on %r to %s for user %s", len(cards), topic, subject, user_id)
    return cards
