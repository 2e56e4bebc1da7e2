"""
DB-backed store classes for Nexus Study.

Each class wraps one table behind point reads and writes. Every mutation is
committed immediately; nothing here orchestrates multi-statement transactions.
"""

from __future__ import annotations

import json
import logging
import secrets
import uuid
from datetime import datetime, date
from typing import Optional

import database
from database import get_db
from models import (
    DEFAULT_DECK,
    FLASHCARD_SUBJECTS,
    EssayRecord,
    Flashcard,
    PooledQuestion,
    SavedQuestion,
    StudyTask,
    UserProfile,
)
from signals import profile_updated, xp_awarded

logger = logging.getLogger(__name__)


def _card_from_row(r) -> Flashcard:
    return Flashcard(
        id=r["id"], front=r["front"], back=r["back"], subject=r["subject"],
        interval_days=r["interval_days"], next_review=r["next_review"],
        created_at=r["created_at"],
    )


def _task_from_row(r) -> StudyTask:
    return StudyTask(
        id=r["id"], subject=r["subject"], topic=r["topic"], date=r["date"],
        duration_minutes=r["duration_minutes"], is_done=bool(r["is_done"]),
    )


# ── Profile ──────────────────────────────────────────────────────────


class ProfileStoreDB:
    """Profile row for one user."""

    EDITABLE_FIELDS = {
        "full_name", "username", "target_course", "current_year", "avatar_url",
        "streak_count", "last_activity_date", "is_pro",
    }

    def __init__(self, user_id: int):
        self.user_id = user_id

    @staticmethod
    def create(user_id: int, full_name: str = "", username: str = "") -> UserProfile:
        db = get_db()
        db.execute(
            "INSERT OR IGNORE INTO profiles (id, full_name, username, updated_at) VALUES (?, ?, ?, ?)",
            (user_id, full_name, username, datetime.now().isoformat()),
        )
        db.commit()
        return ProfileStoreDB(user_id).load()

    def load(self) -> Optional[UserProfile]:
        db = get_db()
        row = db.execute("SELECT * FROM profiles WHERE id = ?", (self.user_id,)).fetchone()
        return UserProfile.from_row(row) if row else None

    def update_fields(self, **fields) -> None:
        unknown = set(fields) - self.EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        if not fields:
            return
        cols = ", ".join(f"{k} = ?" for k in fields)
        values = [int(v) if isinstance(v, bool) else v for v in fields.values()]
        db = get_db()
        db.execute(
            f"UPDATE profiles SET {cols}, updated_at = ? WHERE id = ?",
            (*values, datetime.now().isoformat(), self.user_id),
        )
        db.commit()
        profile_updated.send(self, user_id=self.user_id, fields=sorted(fields))

    def increment_xp(self, amount: int, reason: str = "") -> int:
        """Add XP through the counter-increment call. Returns the new total."""
        total = database.increment_xp(self.user_id, amount)
        if total is None:
            return 0
        xp_awarded.send(self, user_id=self.user_id, amount=amount, reason=reason, total_xp=total)
        profile_updated.send(self, user_id=self.user_id, fields=["level", "xp"])
        return total

    def set_pro(self, is_pro: bool = True) -> None:
        self.update_fields(is_pro=is_pro)


# ── Flashcard Deck ───────────────────────────────────────────────────


class FlashcardDeckDB:
    """A user's flashcards, grouped into decks by subject."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    @property
    def cards(self) -> list[Flashcard]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM flashcards WHERE user_id=? ORDER BY next_review, created_at",
            (self.user_id,),
        ).fetchall()
        return [_card_from_row(r) for r in rows]

    def get(self, card_id: str) -> Optional[Flashcard]:
        db = get_db()
        row = db.execute(
            "SELECT * FROM flashcards WHERE id=? AND user_id=?", (card_id, self.user_id)
        ).fetchone()
        return _card_from_row(row) if row else None

    def add(self, card: Flashcard) -> Flashcard:
        if not card.id:
            card.id = f"fc_{datetime.now().strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(4)}"
        if not card.next_review:
            card.next_review = date.today().isoformat()
        if not card.created_at:
            card.created_at = datetime.now().isoformat()
        db = get_db()
        db.execute(
            "INSERT INTO flashcards (id, user_id, front, back, subject, interval_days, next_review, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (card.id, self.user_id, card.front, card.back, card.subject,
             card.interval_days, card.next_review, card.created_at),
        )
        db.commit()
        return card

    def add_many(self, cards: list[Flashcard]) -> list[Flashcard]:
        return [self.add(c) for c in cards]

    def delete(self, card_id: str) -> bool:
        db = get_db()
        cur = db.execute("DELETE FROM flashcards WHERE id=? AND user_id=?", (card_id, self.user_id))
        db.commit()
        return cur.rowcount > 0

    def update_schedule(self, card_id: str, interval_days: int, next_review: str) -> bool:
        db = get_db()
        cur = db.execute(
            "UPDATE flashcards SET interval_days=?, next_review=? WHERE id=? AND user_id=?",
            (interval_days, next_review, card_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0

    def due_for_subject(self, subject: str, today: date | None = None) -> list[Flashcard]:
        """Cards of one deck whose next review is today or earlier."""
        today_iso = (today or date.today()).isoformat()
        db = get_db()
        if subject == DEFAULT_DECK:
            # Unknown or missing subjects all live in the catch-all deck
            named = [s for s in FLASHCARD_SUBJECTS if s != DEFAULT_DECK]
            marks = ", ".join("?" for _ in named)
            rows = db.execute(
                f"SELECT * FROM flashcards WHERE user_id=? AND (subject IS NULL OR subject NOT IN ({marks})) "
                "AND next_review <= ? ORDER BY next_review, created_at",
                (self.user_id, *named, today_iso),
            ).fetchall()
        else:
            rows = db.execute(
                "SELECT * FROM flashcards WHERE user_id=? AND subject=? AND next_review <= ? "
                "ORDER BY next_review, created_at",
                (self.user_id, subject, today_iso),
            ).fetchall()
        return [_card_from_row(r) for r in rows]


# ── Essays ───────────────────────────────────────────────────────────


class EssayStoreDB:
    """Corrected essays, newest first."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def add(self, content: str, score: int, feedback: dict, theme: str = "") -> EssayRecord:
        now = datetime.now().isoformat()
        db = get_db()
        cur = db.execute(
            "INSERT INTO essays (user_id, theme, content, score, feedback, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (self.user_id, theme, content, score, json.dumps(feedback, ensure_ascii=False), now),
        )
        db.commit()
        return EssayRecord(id=cur.lastrowid, theme=theme, content=content, score=score,
                           feedback=feedback, created_at=now)

    def prune(self, keep: int) -> int:
        """Delete everything older than the newest ``keep`` essays."""
        db = get_db()
        cur = db.execute(
            "DELETE FROM essays WHERE user_id=? AND id NOT IN ("
            "  SELECT id FROM essays WHERE user_id=? ORDER BY created_at DESC, id DESC LIMIT ?"
            ")",
            (self.user_id, self.user_id, keep),
        )
        db.commit()
        return cur.rowcount

    def recent(self, limit: int = 5) -> list[EssayRecord]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM essays WHERE user_id=? ORDER BY created_at DESC, id DESC LIMIT ?",
            (self.user_id, limit),
        ).fetchall()
        return [EssayRecord.from_row(r) for r in rows]

    def count(self) -> int:
        db = get_db()
        row = db.execute("SELECT COUNT(*) AS cnt FROM essays WHERE user_id=?", (self.user_id,)).fetchone()
        return row["cnt"]


# ── Study Tasks ──────────────────────────────────────────────────────


class StudyTaskStoreDB:
    """Planner tasks keyed by ISO date."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def in_range(self, start: str, end: str) -> list[StudyTask]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM study_tasks WHERE user_id=? AND date >= ? AND date <= ? ORDER BY date, created_at",
            (self.user_id, start, end),
        ).fetchall()
        return [_task_from_row(r) for r in rows]

    def all(self) -> list[StudyTask]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM study_tasks WHERE user_id=? ORDER BY date, created_at", (self.user_id,)
        ).fetchall()
        return [_task_from_row(r) for r in rows]

    def get(self, task_id: str) -> Optional[StudyTask]:
        db = get_db()
        row = db.execute(
            "SELECT * FROM study_tasks WHERE id=? AND user_id=?", (task_id, self.user_id)
        ).fetchone()
        return _task_from_row(row) if row else None

    def delete_range(self, start: str, end: str) -> int:
        db = get_db()
        cur = db.execute(
            "DELETE FROM study_tasks WHERE user_id=? AND date >= ? AND date <= ?",
            (self.user_id, start, end),
        )
        db.commit()
        return cur.rowcount

    def add_many(self, tasks: list[StudyTask]) -> list[StudyTask]:
        now = datetime.now().isoformat()
        db = get_db()
        for t in tasks:
            if not t.id:
                t.id = str(uuid.uuid4())
            db.execute(
                "INSERT INTO study_tasks (id, user_id, subject, topic, date, duration_minutes, is_done, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (t.id, self.user_id, t.subject, t.topic, t.date, t.duration_minutes, int(t.is_done), now),
            )
        db.commit()
        return tasks

    def set_done(self, task_id: str, is_done: bool) -> bool:
        db = get_db()
        cur = db.execute(
            "UPDATE study_tasks SET is_done=? WHERE id=? AND user_id=?",
            (int(is_done), task_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0


# ── Question Pool ────────────────────────────────────────────────────


class QuestionPoolDB:
    """Shared pool of reusable questions (not scoped to one user)."""

    @staticmethod
    def _from_row(r) -> PooledQuestion:
        # rows imported by hand may hold invalid JSON; callers drop content=None
        try:
            content = json.loads(r["content"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Pool question id=%s has undecodable content", r["id"])
            content = None
        return PooledQuestion(
            id=r["id"], subject=r["subject"], topic=r["topic"], difficulty=r["difficulty"],
            content=content, is_public=bool(r["is_public"]),
            created_by=r["created_by"],
        )

    def find(self, subject: str, topic: str, difficulty: str, limit: int = 5) -> list[PooledQuestion]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM questions_pool WHERE subject=? AND topic=? AND difficulty=? LIMIT ?",
            (subject, topic, difficulty, limit),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def search(self, subject: str, topic: str = "", limit: int = 20) -> list[PooledQuestion]:
        """Bank search: exact subject, topic as a case-insensitive substring."""
        db = get_db()
        if topic:
            rows = db.execute(
                "SELECT * FROM questions_pool WHERE subject=? AND topic LIKE ? COLLATE NOCASE LIMIT ?",
                (subject, f"%{topic}%", limit),
            ).fetchall()
        else:
            rows = db.execute(
                "SELECT * FROM questions_pool WHERE subject=? LIMIT ?", (subject, limit)
            ).fetchall()
        return [self._from_row(r) for r in rows]

    def add(self, subject: str, topic: str, difficulty: str, content,
            created_by: int | None = None, is_public: bool = True) -> int:
        db = get_db()
        cur = db.execute(
            "INSERT INTO questions_pool (created_by, subject, topic, difficulty, content, is_public, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (created_by, subject, topic, difficulty, json.dumps(content, ensure_ascii=False),
             int(is_public), datetime.now().isoformat()),
        )
        db.commit()
        return cur.lastrowid


# ── Saved Questions ──────────────────────────────────────────────────


class SavedQuestionStoreDB:

    def __init__(self, user_id: int):
        self.user_id = user_id

    def save(self, content: dict, subject: str, topic: str, is_correct: bool) -> SavedQuestion:
        now = datetime.now().isoformat()
        db = get_db()
        cur = db.execute(
            "INSERT INTO saved_questions (user_id, content, subject, topic, is_correct, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (self.user_id, json.dumps(content, ensure_ascii=False), subject, topic, int(is_correct), now),
        )
        db.commit()
        return SavedQuestion(id=cur.lastrowid, content=content, subject=subject, topic=topic,
                             is_correct=is_correct, created_at=now)

    def recent(self, limit: int = 50) -> list[SavedQuestion]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM saved_questions WHERE user_id=? ORDER BY created_at DESC, id DESC LIMIT ?",
            (self.user_id, limit),
        ).fetchall()
        return [
            SavedQuestion(id=r["id"], content=json.loads(r["content"]), subject=r["subject"],
                          topic=r["topic"], is_correct=bool(r["is_correct"]), created_at=r["created_at"])
            for r in rows
        ]

    def delete(self, saved_id: int) -> bool:
        db = get_db()
        cur = db.execute("DELETE FROM saved_questions WHERE id=? AND user_id=?", (saved_id, self.user_id))
        db.commit()
        return cur.rowcount > 0
