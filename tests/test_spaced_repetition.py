"""Tests for flashcard scheduling, study sessions and deck grouping."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest

import spaced_repetition
from db_stores import FlashcardDeckDB
from models import Flashcard
from spaced_repetition import (
    Quality,
    StudySession,
    build_decks,
    record_answer,
    schedule,
)

TODAY = date(2026, 5, 4)


def _card(card_id: str, subject: str | None = "Biologia", next_review: str = "2026-05-04") -> Flashcard:
    return Flashcard(id=card_id, front=f"Frente {card_id}", back=f"Verso {card_id}",
                     subject=subject, next_review=next_review)


class TestSchedule:
    @pytest.mark.parametrize("quality,days,expected", [
        ("hard", 1, "2026-05-05"),
        ("medium", 2, "2026-05-06"),
        ("easy", 4, "2026-05-08"),
    ])
    def test_fixed_intervals(self, quality, days, expected):
        outcome = schedule(quality, TODAY)
        assert outcome.deleted is False
        assert outcome.interval_days == days
        assert outcome.next_review == expected

    def test_interval_does_not_grow_with_repeats(self):
        assert schedule(Quality.EASY, TODAY).interval_days == 4
        assert schedule(Quality.EASY, date(2026, 5, 8)).interval_days == 4

    def test_unknown_quality_rejected(self):
        with pytest.raises(ValueError):
            schedule("perfect", TODAY)

    def test_interval_above_mastery_threshold_deletes(self):
        with patch.dict(spaced_repetition.INTERVAL_DAYS, {Quality.EASY: 8}):
            outcome = schedule(Quality.EASY, TODAY)
        assert outcome.deleted is True
        assert outcome.next_review is None

    def test_no_answer_reaches_mastery_with_current_table(self):
        for quality in Quality:
            assert not schedule(quality, TODAY).deleted


class TestRecordAnswer:
    def test_reschedules_card(self, app):
        with app.app_context():
            deck = FlashcardDeckDB(1)
            card = deck.add(_card("c1"))
            outcome = record_answer(deck, card, "medium", TODAY)
            stored = deck.get("c1")
            assert outcome.next_review == "2026-05-06"
            assert stored.interval_days == 2
            assert stored.next_review == "2026-05-06"
            assert card.next_review == "2026-05-06"

    def test_three_easy_answers_keep_the_card(self, app):
        with app.app_context():
            deck = FlashcardDeckDB(1)
            card = deck.add(_card("c1"))
            for day in (4, 8, 12):
                outcome = record_answer(deck, card, Quality.EASY, date(2026, 5, day))
                assert not outcome.deleted
                assert outcome.interval_days == 4
            stored = deck.get("c1")
            assert stored.interval_days == 4
            assert stored.next_review == "2026-05-16"

    def test_mastered_card_is_removed(self, app):
        with app.app_context():
            deck = FlashcardDeckDB(1)
            card = deck.add(_card("c1"))
            with patch.dict(spaced_repetition.INTERVAL_DAYS, {Quality.EASY: 10}):
                outcome = record_answer(deck, card, "easy", TODAY)
            assert outcome.deleted
            assert deck.get("c1") is None


class TestStudySession:
    def test_walks_queue_in_order(self):
        session = StudySession("Biologia", [_card("a"), _card("b")])
        assert session.current.id == "a"
        assert session.remaining == 2
        assert session.advance().id == "b"
        assert [c.id for c in session.queue] == ["b"]
        assert session.advance() is None
        assert session.exhausted
        assert session.remaining == 0

    def test_empty_session_is_exhausted(self):
        session = StudySession("Física", [])
        assert session.exhausted
        assert session.current is None
        assert session.advance() is None


class TestBuildDecks:
    def test_fixed_order_and_empty_decks_skipped(self):
        cards = [
            _card("1", "Química"),
            _card("2", "Matemática"),
            _card("3", "Química", next_review="2026-05-10"),
        ]
        decks = build_decks(cards, TODAY)
        assert [d["subject"] for d in decks] == ["Matemática", "Química"]
        assert decks[1] == {"subject": "Química", "total": 2, "due": 1}

    def test_missing_or_unknown_subject_goes_to_outros(self):
        cards = [_card("1", None), _card("2", "Astronomia"), _card("3", "Outros")]
        assert build_decks(cards, TODAY) == [{"subject": "Outros", "total": 3, "due": 3}]
