"""
User Authentication: Flask-Login blueprint.

Provides JSON register, login, and logout routes.
Uses werkzeug.security for password hashing. Registration also creates the
student's profile row.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from flask import Blueprint, jsonify
from flask_login import LoginManager, UserMixin, login_user, logout_user
from werkzeug.security import generate_password_hash, check_password_hash

from database import get_db
from db_stores import ProfileStoreDB
from errors import InvalidRequestError, StudyAppError
from extensions import limiter
from helpers import json_body

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, email: str):
        self.id = id
        self.email = email

    @staticmethod
    def get(user_id: int):
        db = get_db()
        row = db.execute("SELECT id, email FROM users WHERE id = ?", (user_id,)).fetchone()
        if row:
            return User(row["id"], row["email"])
        return None

    @staticmethod
    def get_by_email(email: str):
        db = get_db()
        return db.execute(
            "SELECT id, email, password_hash FROM users WHERE email = ?", (email,),
        ).fetchone()


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Faça login para continuar."}), 401


def _credentials(data: dict) -> tuple[str, str]:
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise InvalidRequestError("E-mail e senha são obrigatórios.")
    return email, password


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per hour")
def register():
    data = json_body()
    email, password = _credentials(data)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.")

    db = get_db()
    try:
        cur = db.execute(
            "INSERT INTO users (email, password_hash, created_at) VALUES (?, ?, ?)",
            (email, generate_password_hash(password), datetime.now().isoformat()),
        )
        db.commit()
    except sqlite3.IntegrityError:
        raise StudyAppError("Este e-mail já está cadastrado.", status_code=409)

    user_id = cur.lastrowid
    profile = ProfileStoreDB.create(
        user_id,
        full_name=(data.get("full_name") or "").strip(),
        username=(data.get("username") or "").strip(),
    )
    login_user(User(user_id, email), remember=True)
    logger.info("Registered user %s", user_id)
    return jsonify({"user_id": user_id, "profile": profile.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    email, password = _credentials(json_body())
    row = User.get_by_email(email)
    if not row or not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        logger.info("Failed login for %s", email)
        return jsonify({"error": "E-mail ou senha inválidos."}), 401

    login_user(User(row["id"], row["email"]), remember=True)
    return jsonify({"user_id": row["id"]})


@auth_bp.route("/logout")
def logout():
    logout_user()
    return jsonify({"success": True})
