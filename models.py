"""
Domain dataclasses and fixed tables for Nexus Study.

Rows from database.py are turned into these by the store classes in
db_stores.py; services and blueprints only ever see the dataclasses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any


# Deck order shown to the student; cards without a subject land in "Outros".
FLASHCARD_SUBJECTS = [
    "Matemática",
    "Física",
    "Química",
    "Biologia",
    "História",
    "Geografia",
    "Português",
    "Inglês",
    "Outros",
]
DEFAULT_DECK = "Outros"

# ENEM knowledge areas used by the question lab
QUESTION_SUBJECTS = [
    "Matemática",
    "Natureza",
    "Humanas",
    "Linguagens",
]

DIFFICULTIES = ("easy", "medium", "hard")

XP_AWARDS = {
    "correct_answer": 10,
    "complete_planner_task": 10,
    "pomodoro_complete": 25,
}

COMPETENCIES = ("c1", "c2", "c3", "c4", "c5")


@dataclass
class UserProfile:
    id: int
    full_name: str = ""
    username: str = ""
    target_course: str = ""
    current_year: str = ""
    avatar_url: str = ""
    streak_count: int = 0
    last_activity_date: str | None = None  # ISO date
    is_pro: bool = False
    xp: int = 0
    level: int = 1

    @classmethod
    def from_row(cls, row) -> UserProfile:
        return cls(
            id=row["id"],
            full_name=row["full_name"],
            username=row["username"],
            target_course=row["target_course"],
            current_year=row["current_year"],
            avatar_url=row["avatar_url"],
            streak_count=row["streak_count"],
            last_activity_date=row["last_activity_date"],
            is_pro=bool(row["is_pro"]),
            xp=row["xp"],
            level=row["level"],
        )

    @property
    def xp_for_next_level(self) -> int:
        return self.level ** 2 * 50

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["xp_for_next_level"] = self.xp_for_next_level
        return d


@dataclass
class Flashcard:
    id: str
    front: str
    back: str
    subject: str | None = None
    interval_days: int = 1
    next_review: str = ""  # ISO date
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def deck(self) -> str:
        return self.subject or DEFAULT_DECK

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StudyTask:
    id: str
    subject: str
    topic: str
    date: str
    duration_minutes: int = 60
    is_done: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PooledQuestion:
    id: int
    subject: str
    topic: str
    difficulty: str
    content: Any  # raw decoded JSON: a question object or a one-element list
    is_public: bool = True
    created_by: int | None = None


@dataclass
class EssayRecord:
    id: int
    theme: str
    content: str
    score: int
    feedback: dict = field(default_factory=dict)
    created_at: str = ""

    @classmethod
    def from_row(cls, row) -> EssayRecord:
        return cls(
            id=row["id"],
            theme=row["theme"],
            content=row["content"],
            score=row["score"],
            feedback=json.loads(row["feedback"] or "{}"),
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SavedQuestion:
    id: int
    content: dict
    subject: str
    topic: str
    is_correct: bool
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
