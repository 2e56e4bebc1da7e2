"""Health, profile and plan upgrade routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import ProfileStoreDB
from errors import InvalidRequestError
from helpers import current_profile, current_user_id, json_body

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

PROFILE_UPDATABLE = ("full_name", "username", "target_course", "current_year", "avatar_url")


@bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/api/profile")
@login_required
def api_profile():
    return jsonify(current_profile().to_dict())


@bp.route("/api/profile", methods=["PATCH"])
@login_required
def api_profile_update():
    data = json_body()
    fields = {k: str(data[k]).strip() for k in PROFILE_UPDATABLE if k in data}
    if not fields:
        raise InvalidRequestError("Nenhum campo para atualizar.")
    ProfileStoreDB(current_user_id()).update_fields(**fields)
    return jsonify(current_profile().to_dict())


@bp.route("/api/profile/upgrade", methods=["POST"])
@login_required
def api_profile_upgrade():
    # Simulated checkout: flips the flag, no payment provider involved
    profile = current_profile()
    if profile.is_pro:
        return jsonify({"is_pro": True, "message": "Você já é Nexus Pro."})
    ProfileStoreDB(profile.id).set_pro(True)
    logger.info("User %s upgraded to Pro", profile.id)
    return jsonify({"is_pro": True, "message": "Parabéns! Você agora é Nexus Pro!"})
