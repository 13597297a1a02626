# tests/conftest.py
"""
Pytest configuration and fixtures.

Database tests run against in-memory SQLite with foreign keys switched on,
so ON DELETE CASCADE behaves like Postgres.
"""

import os
import uuid
from datetime import datetime

import pytest

# Set test environment before any skolapp import
os.environ.setdefault("TESTING", "1")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}

# Fixed reference time for lifecycle tests
NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory engine."""
    from skolapp.database import Base, SessionLocal, engine
    from skolapp import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


class Factory:
    """Row builders for lifecycle tests. Every helper commits."""

    def __init__(self, session):
        self.db = session

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def org(self, name="Testskolan", **settings):
        from skolapp.models import Organization, OrgSettings

        org = self._save(Organization(name=name))
        if settings:
            self._save(OrgSettings(org_id=org.id, **settings))
        return org

    def quiz(self, org=None, created_by=None, title="Glosor v.12"):
        from skolapp.models import Quiz

        return self._save(Quiz(org_id=org.id if org else None, title=title, created_by=created_by))

    def attempt(self, quiz, data_mode="short", student_id=None, created_at=NOW):
        from skolapp.models import Attempt

        return self._save(
            Attempt(quiz_id=quiz.id, student_id=student_id, data_mode=data_mode, created_at=created_at)
        )

    def answer(self, attempt, question_id="q1"):
        from skolapp.models import Answer

        return self._save(Answer(attempt_id=attempt.id, question_id=question_id, answer={"choice": 1}))

    def consent(self, org, student_id=None, status="granted", granted_at=NOW, expires_at=None):
        from skolapp.models import GuardianConsent

        return self._save(
            GuardianConsent(
                org_id=org.id,
                student_id=student_id or uuid.uuid4(),
                status=status,
                granted_at=granted_at,
                expires_at=expires_at,
            )
        )

    def invite(self, org, student_id=None, status="sent", expires_at=NOW, token=None):
        from skolapp.models import ConsentInvite

        return self._save(
            ConsentInvite(
                org_id=org.id,
                student_id=student_id or uuid.uuid4(),
                guardian_email="vardnadshavare@example.se",
                token=token or f"consent_{uuid.uuid4().hex}",
                status=status,
                expires_at=expires_at,
            )
        )

    def user(self, email="e2e@example.se", e2e=True, created_at=NOW):
        from skolapp.models import User

        metadata = {"e2e": "true"} if e2e else {}
        return self._save(User(email=email, user_metadata=metadata, created_at=created_at))


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def client(db):
    """API test client bound to the test session with an isolated rate limiter."""
    from fastapi.testclient import TestClient

    from skolapp.config import Settings, get_settings
    from skolapp.database import get_db
    from skolapp.main import app
    from skolapp.services.rate_limit import ANSWER_RULE, InMemoryCounterStore, RateLimiter, get_answer_rate_limiter

    limiter = RateLimiter(InMemoryCounterStore(), ANSWER_RULE)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: Settings(
        DATABASE_URL="sqlite:///:memory:",
        ADMIN_API_KEY="test-admin-key",
    )
    app.dependency_overrides[get_answer_rate_limiter] = lambda: limiter

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)
