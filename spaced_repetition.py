"""
Flashcard review scheduling.

Each answer sets the card's interval from a fixed table (hard 1 day,
medium 2, easy 4); the interval is not multiplied by the previous one.
A card whose interval would exceed MASTERY_THRESHOLD_DAYS is considered
mastered and deleted instead of rescheduled. With the current table the
largest interval is 4, so deletion never happens from answers alone.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from models import DEFAULT_DECK, FLASHCARD_SUBJECTS, Flashcard


class Quality(str, enum.Enum):
    HARD = "hard"
    MEDIUM = "medium"
    EASY = "easy"


INTERVAL_DAYS = {
    Quality.HARD: 1,
    Quality.MEDIUM: 2,
    Quality.EASY: 4,
}

MASTERY_THRESHOLD_DAYS = 7


@dataclass
class ReviewOutcome:
    deleted: bool
    interval_days: int
    next_review: Optional[str] = None  # ISO date, None when deleted

    def to_dict(self) -> dict:
        return {
            "deleted": self.deleted,
            "interval_days": self.interval_days,
            "next_review": self.next_review,
        }


def schedule(quality: Quality | str, today: date | None = None) -> ReviewOutcome:
    """Pure scheduling decision for one answer."""
    today = today or date.today()
    interval = INTERVAL_DAYS[Quality(quality)]
    if interval > MASTERY_THRESHOLD_DAYS:
        return ReviewOutcome(deleted=True, interval_days=interval)
    return ReviewOutcome(
        deleted=False,
        interval_days=interval,
        next_review=(today + timedelta(days=interval)).isoformat(),
    )


def record_answer(deck, card: Flashcard, quality: Quality | str,
                  today: date | None = None) -> ReviewOutcome:
    """Apply an answer to ``card`` and persist it through ``deck`` (a FlashcardDeckDB)."""
    outcome = schedule(quality, today)
    if outcome.deleted:
        deck.delete(card.id)
    else:
        deck.update_schedule(card.id, outcome.interval_days, outcome.next_review)
        card.interval_days = outcome.interval_days
        card.next_review = outcome.next_review
    return outcome


class StudySession:
    """Queue of due cards for one deck, fixed when the session starts."""

    def __init__(self, subject: str, cards: list[Flashcard]):
        self.subject = subject
        self._cards = list(cards)
        self._position = 0

    @property
    def current(self) -> Optional[Flashcard]:
        if self.exhausted:
            return None
        return self._cards[self._position]

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._cards)

    @property
    def queue(self) -> list[Flashcard]:
        """Cards not yet answered, in session order."""
        return self._cards[self._position:]

    @property
    def remaining(self) -> int:
        return max(0, len(self._cards) - self._position)

    def advance(self) -> Optional[Flashcard]:
        """Move to the next card; returns it, or None once the queue is done."""
        if not self.exhausted:
            self._position += 1
        return self.current


def build_decks(cards: list[Flashcard], today: date | None = None) -> list[dict]:
    """Group cards by subject in the fixed deck order, skipping empty decks."""
    today_iso = (today or date.today()).isoformat()
    totals: Counter = Counter()
    due: Counter = Counter()
    for card in cards:
        deck = card.deck if card.deck in FLASHCARD_SUBJECTS else DEFAULT_DECK
        totals[deck] += 1
        if card.next_review <= today_iso:
            due[deck] += 1
    return [
        {"subject": subject, "total": totals[subject], "due": due[subject]}
        for subject in FLASHCARD_SUBJECTS
        if totals[subject]
    ]
