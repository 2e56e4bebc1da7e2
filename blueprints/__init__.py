"""
Blueprint registration for Nexus Study.

All blueprints are registered without URL prefixes; each one owns its /api/... paths.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.flashcards import bp as flashcards_bp
    from blueprints.questions import bp as questions_bp
    from blueprints.essays import bp as essays_bp
    from blueprints.planner import bp as planner_bp
    from blueprints.gamification import bp as gamification_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(flashcards_bp)
    app.register_blueprint(questions_bp)
    app.register_blueprint(essays_bp)
    app.register_blueprint(planner_bp)
    app.register_blueprint(gamification_bp)
