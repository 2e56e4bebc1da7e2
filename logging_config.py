"""
Structured logging configuration.

Records carry the request id (echoed back in X-Request-ID) and the id of the
logged-in student. LOG_FORMAT=json emits one JSON object per line; anything
else uses the text layout. XP awards and streak changes are written to the
"nexus.gamification" logger through the profile signals.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request
from flask_login import current_user

from signals import streak_changed, xp_awarded

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [req=%(request_id)s user=%(user_id)s]: %(message)s"

gamification_log = logging.getLogger("nexus.gamification")


class StudyContextFilter(logging.Filter):
    """Stamp records with request id and user id (``-`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id, user_id = "-", "-"
        if has_request_context():
            request_id = getattr(g, "request_id", "-")
            if getattr(current_user, "is_authenticated", False):
                user_id = current_user.id
        record.request_id = getattr(record, "request_id", request_id)
        record.user_id = getattr(record, "user_id", user_id)
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _log_xp(sender, user_id: int, amount: int, reason: str = "", total_xp: int = 0, **kwargs) -> None:
    gamification_log.info("+%d XP (%s) for user %s, total %d", amount, reason or "?", user_id, total_xp)


def _log_streak(sender, user_id: int, streak: int, previous: int = 0, **kwargs) -> None:
    gamification_log.info("Streak for user %s: %d -> %d", user_id, previous, streak)


def init_logging(app: Flask) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    handler = logging.StreamHandler()
    handler.addFilter(StudyContextFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for noisy in ("werkzeug", "httpx", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    xp_awarded.connect(_log_xp)
    streak_changed.connect(_log_streak)

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _access_log(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        if request.path != "/health":
            elapsed = (time.perf_counter() - getattr(g, "request_start", time.perf_counter())) * 1000
            app.logger.info("%s %s -> %d (%.0fms)", request.method, request.path,
                            response.status_code, elapsed)
        return response
