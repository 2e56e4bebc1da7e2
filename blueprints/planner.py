"""Study planner routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from errors import InvalidRequestError
from extensions import ai_rate_limit, limiter
from helpers import current_user_id, json_body, pro_required
from planner import StudyPlanner

bp = Blueprint("planner", __name__)


@bp.route("/api/planner")
@login_required
def api_planner():
    planner = StudyPlanner(current_user_id())
    tasks = planner.week()
    return jsonify({
        "tasks": [t.to_dict() for t in tasks],
        "done": sum(1 for t in tasks if t.is_done),
        "total": len(tasks),
    })


@bp.route("/api/planner/generate", methods=["POST"])
@login_required
@limiter.limit(ai_rate_limit)
@pro_required("o Planner Inteligente")
def api_planner_generate():
    data = json_body()
    try:
        hours = float(data.get("hours_per_day", 4))
    except (TypeError, ValueError):
        raise InvalidRequestError("hours_per_day deve ser numérico.")

    planner = StudyPlanner(current_user_id())
    tasks, used_fallback = planner.generate_plan(
        hours_per_day=hours,
        focus=(data.get("focus") or "").strip(),
        weakness=(data.get("weakness") or "").strip(),
    )
    return jsonify({
        "tasks": [t.to_dict() for t in tasks],
        "fallback": used_fallback,
    }), 201


@bp.route("/api/planner/tasks/<task_id>/toggle", methods=["POST"])
@login_required
def api_planner_toggle(task_id):
    planner = StudyPlanner(current_user_id())
    return jsonify(planner.toggle_task(task_id))
