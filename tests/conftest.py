"""
Test fixtures for Nexus Study.

Provides app, client, auth_client, pro_client, db and fake_ai fixtures with
file-based SQLite. The AI backend is replaced by a scripted FakeAI so no
test ever reaches a provider.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from factories import FakeAI  # noqa: E402


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh AI backend and circuit breaker for every test."""
    from ai_resilience import get_circuit_breaker
    from extensions import AIManager

    AIManager.reset()
    get_circuit_breaker().reset()
    yield
    AIManager.reset()
    get_circuit_breaker().reset()


@pytest.fixture
def fake_ai():
    from extensions import AIManager

    fake = FakeAI()
    AIManager.set_backend(fake)
    return fake


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "GOOGLE_API_KEY": "test-google-key",
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()
        app._db_initialized = True

        # Seed test user + profile
        db = get_db()
        db.execute(
            "INSERT INTO users (id, email, password_hash, created_at) VALUES (1, 'test@example.com', ?, ?)",
            ("pbkdf2:sha256:600000$test$hash", datetime.now().isoformat()),
        )
        db.execute(
            "INSERT INTO profiles (id, full_name, username, target_course) "
            "VALUES (1, 'Test Student', 'teststudent', 'Medicina')"
        )
        db.commit()

        yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def auth_client(app):
    """Authenticated test client (logged in as test user)."""
    from werkzeug.security import generate_password_hash
    from database import get_db

    with app.app_context():
        db = get_db()
        db.execute(
            "UPDATE users SET password_hash = ? WHERE id = 1",
            (generate_password_hash("testpass123"),),
        )
        db.commit()

    client = app.test_client()
    with client:
        resp = client.post("/login", json={
            "email": "test@example.com",
            "password": "testpass123",
        })
        assert resp.status_code == 200
        yield client


@pytest.fixture
def pro_client(app, auth_client):
    """Authenticated client whose profile is on the Pro plan."""
    with app.app_context():
        from db_stores import ProfileStoreDB
        ProfileStoreDB(1).set_pro(True)
    return auth_client


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()
