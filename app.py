"""
Nexus Study: Flask Web Application

JSON backend for ENEM / vestibular preparation: flashcards with spaced
repetition, a question lab over a shared question pool, AI essay correction,
a weekly study planner, a focus timer and gamification.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

from flask import Flask, Response, jsonify

import database
import profile_cache
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from errors import ConfigurationError, StudyAppError
from extensions import limiter

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    if test_config is not None:
        from config import TestingConfig
        app.config.from_object(TestingConfig)
        app.config.update(test_config)
    else:
        from config import get_config
        cfg = get_config()
        cfg.validate()
        app.config.from_object(cfg)

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Profile cache (invalidated by profile_updated)
    profile_cache.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Register auth blueprint and login manager
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    @app.errorhandler(StudyAppError)
    def handle_study_error(exc: StudyAppError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    return app


if __name__ == "__main__":
    try:
        application = create_app()
    except ConfigurationError as exc:
        print(f"[nexus-study] {exc.message}", file=sys.stderr)
        sys.exit(1)
    application.run(debug=application.config.get("DEBUG", False), port=5001)
