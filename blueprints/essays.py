"""Essay correction routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import ai_rate_limit, limiter
from grader import EssayGrader
from helpers import current_user_id, json_body, pro_required

bp = Blueprint("essays", __name__)


@bp.route("/api/essays", methods=["POST"])
@login_required
@limiter.limit(ai_rate_limit)
@pro_required("a Correção de Redação")
def api_essay_correct():
    data = json_body()
    grader = EssayGrader(current_user_id())
    result = grader.correct(data.get("content", ""), theme=(data.get("theme") or "").strip())
    return jsonify(result.to_dict()), 201


@bp.route("/api/essays")
@login_required
def api_essay_history():
    grader = EssayGrader(current_user_id())
    return jsonify({"essays": [e.to_dict() for e in grader.history()]})
