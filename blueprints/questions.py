"""Question lab routes: generate, bank search, answer, saved questions."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required
from pydantic import ValidationError

from ai_schemas import QuestionContent
from db_stores import SavedQuestionStoreDB
from errors import InvalidRequestError
from extensions import ai_rate_limit, limiter
from helpers import bool_field, current_user_id, int_field, json_body
from question_gate import QuestionCacheGate, answer_question

bp = Blueprint("questions", __name__)


def _question_from(data: dict) -> QuestionContent:
    try:
        return QuestionContent.model_validate(data.get("question") or {})
    except ValidationError:
        raise InvalidRequestError("Questão inválida.")


@bp.route("/api/questions/generate", methods=["POST"])
@login_required
@limiter.limit(ai_rate_limit)
def api_questions_generate():
    data = json_body()
    gate = QuestionCacheGate()
    questions, source = gate.fetch(
        subject=data.get("subject", ""),
        topic=data.get("topic", ""),
        difficulty=data.get("difficulty", "medium"),
        user_id=current_user_id(),
        bypass_cache=bool_field(data, "bypass_cache"),
    )
    return jsonify({
        "questions": [q.to_content() for q in questions],
        "source": source,
    })


@bp.route("/api/questions/bank")
@login_required
def api_questions_bank():
    gate = QuestionCacheGate()
    question = gate.search_bank(request.args.get("subject", ""), request.args.get("topic", ""))
    return jsonify({"question": question.to_content()})


@bp.route("/api/questions/answer", methods=["POST"])
@login_required
def api_questions_answer():
    data = json_body()
    result = answer_question(
        current_user_id(),
        _question_from(data),
        int_field(data, "selected"),
        subject=data.get("subject", ""),
        topic=data.get("topic", ""),
        save=bool_field(data, "save"),
    )
    return jsonify(result)


@bp.route("/api/questions/save", methods=["POST"])
@login_required
def api_questions_save():
    data = json_body()
    question = _question_from(data)
    saved = SavedQuestionStoreDB(current_user_id()).save(
        question.to_content(),
        subject=(data.get("subject") or "").strip(),
        topic=(data.get("topic") or "").strip(),
        is_correct=bool_field(data, "is_correct"),
    )
    return jsonify({"saved": saved.to_dict()}), 201


@bp.route("/api/questions/saved")
@login_required
def api_questions_saved():
    saved = SavedQuestionStoreDB(current_user_id()).recent()
    return jsonify({"saved": [s.to_dict() for s in saved]})


@bp.route("/api/questions/saved/<int:saved_id>", methods=["DELETE"])
@login_required
def api_questions_saved_delete(saved_id):
    if SavedQuestionStoreDB(current_user_id()).delete(saved_id):
        return jsonify({"success": True})
    return jsonify({"error": "Questão salva não encontrada."}), 404
