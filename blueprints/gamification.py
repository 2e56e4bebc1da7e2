"""Gamification routes: XP/level summary, streak, focus timer, tutor."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from errors import InvalidRequestError
from extensions import ai_rate_limit, limiter
from focus import PHASE_MINUTES, Phase, complete_phase
from helpers import current_profile, current_user_id, json_body
from streaks import update_streak
from tutor import TutorSession

bp = Blueprint("gamification", __name__)


@bp.route("/api/gamification")
@login_required
def api_gamification():
    profile = current_profile()
    return jsonify({
        "xp": profile.xp,
        "level": profile.level,
        "xp_for_next_level": profile.xp_for_next_level,
        "streak_count": profile.streak_count,
        "last_activity_date": profile.last_activity_date,
        "is_pro": profile.is_pro,
    })


@bp.route("/api/streak", methods=["POST"])
@login_required
def api_streak():
    return jsonify({"streak_count": update_streak(current_user_id())})


@bp.route("/api/focus")
def api_focus_settings():
    return jsonify({phase.value: minutes for phase, minutes in PHASE_MINUTES.items()})


@bp.route("/api/focus/complete", methods=["POST"])
@login_required
def api_focus_complete():
    data = json_body()
    try:
        phase = Phase(data.get("phase", "focus"))
    except ValueError:
        raise InvalidRequestError("phase deve ser focus ou break.")
    return jsonify(complete_phase(current_user_id(), phase).to_dict())


@bp.route("/api/tutor/ask", methods=["POST"])
@login_required
@limiter.limit(ai_rate_limit)
def api_tutor_ask():
    data = json_body()
    history = data.get("history") or []
    if not isinstance(history, list):
        raise InvalidRequestError("history deve ser uma lista de mensagens.")
    answer = TutorSession().respond(
        data.get("question", ""),
        context=data.get("context") or "",
        history=[h for h in history if isinstance(h, dict)],
    )
    return jsonify({"answer": answer})
