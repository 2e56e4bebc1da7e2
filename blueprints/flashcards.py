"""Flashcard CRUD, study session and review routes."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import login_required

from db_stores import FlashcardDeckDB
from errors import InvalidRequestError, NotFoundError
from extensions import ai_rate_limit, limiter
from flashcard_generator import generate_flashcards
from helpers import current_user_id, int_field, json_body, pro_required
from models import DEFAULT_DECK, FLASHCARD_SUBJECTS, Flashcard
from spaced_repetition import Quality, StudySession, build_decks, record_answer
from streaks import update_streak

bp = Blueprint("flashcards", __name__)


def _subject_arg(value: str | None) -> str:
    subject = (value or DEFAULT_DECK).strip()
    if subject not in FLASHCARD_SUBJECTS:
        raise InvalidRequestError(f"Matéria inválida: {subject}")
    return subject


@bp.route("/api/flashcards")
@login_required
def api_flashcards():
    deck = FlashcardDeckDB(current_user_id())
    cards = deck.cards
    return jsonify({
        "cards": [c.to_dict() for c in cards],
        "total": len(cards),
    })


@bp.route("/api/flashcards/decks")
@login_required
def api_flashcard_decks():
    deck = FlashcardDeckDB(current_user_id())
    return jsonify({"decks": build_decks(deck.cards, date.today())})


@bp.route("/api/flashcards/study")
@login_required
def api_flashcard_study():
    """Due queue for one deck; the client walks it front to back."""
    subject = _subject_arg(request.args.get("subject"))
    deck = FlashcardDeckDB(current_user_id())
    session = StudySession(subject, deck.due_for_subject(subject, date.today()))
    return jsonify({
        "subject": subject,
        "cards": [c.to_dict() for c in session.queue],
        "remaining": session.remaining,
    })


@bp.route("/api/flashcards", methods=["POST"])
@login_required
def api_flashcard_create():
    data = json_body()
    front = (data.get("front") or "").strip()
    back = (data.get("back") or "").strip()
    if not front or not back:
        raise InvalidRequestError("Preencha ambos os lados do card.")
    subject = _subject_arg(data.get("subject"))

    deck = FlashcardDeckDB(current_user_id())
    card = deck.add(Flashcard(
        id="",
        front=front,
        back=back,
        subject=subject,
        interval_days=1,
        next_review=date.today().isoformat(),
        created_at="",
    ))
    return jsonify({"card": card.to_dict()}), 201


@bp.route("/api/flashcards/generate", methods=["POST"])
@login_required
@limiter.limit(ai_rate_limit)
@pro_required("Flashcards Ilimitados")
def api_flashcard_generate():
    data = json_body()
    cards = generate_flashcards(
        current_user_id(),
        topic=data.get("topic", ""),
        subject=_subject_arg(data.get("subject")),
        count=int_field(data, "count", 5),
    )
    return jsonify({"cards": [c.to_dict() for c in cards]}), 201


@bp.route("/api/flashcards/<card_id>/answer", methods=["POST"])
@login_required
def api_flashcard_answer(card_id):
    data = json_body()
    try:
        quality = Quality(data.get("quality", ""))
    except ValueError:
        raise InvalidRequestError("quality deve ser hard, medium ou easy.")

    uid = current_user_id()
    deck = FlashcardDeckDB(uid)
    card = deck.get(card_id)
    if card is None:
        raise NotFoundError("Card não encontrado.")
    outcome = record_answer(deck, card, quality, date.today())

    result = outcome.to_dict()
    # The last card of a session counts as a study day
    if data.get("session_complete"):
        result["streak"] = update_streak(uid)
    return jsonify(result)


@bp.route("/api/flashcards/<card_id>", methods=["DELETE"])
@login_required
def api_flashcard_delete(card_id):
    deck = FlashcardDeckDB(current_user_id())
    if deck.delete(card_id):
        return jsonify({"success": True})
    raise NotFoundError("Card não encontrado.")
