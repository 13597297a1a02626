# tests/unit/test_retention/test_data_mode.py
"""Unit tests for data mode resolution and attempt creation."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest


class TestResolveDataMode:
    """Tests for resolve_data_mode()."""

    def test_anonymous_is_short(self):
        """Guests never get long-term retention, and no lookup is made."""
        from skolapp.models import DataMode
        from skolapp.services.retention.data_mode import resolve_data_mode

        mock_db = MagicMock()

        assert resolve_data_mode(mock_db, None) == DataMode.SHORT
        mock_db.query.assert_not_called()

    def test_lookup_error_falls_back_to_short(self):
        """A failing consent lookup must not fail attempt creation."""
        from skolapp.models import DataMode
        from skolapp.services.retention.data_mode import resolve_data_mode

        with patch(
            "skolapp.services.retention.data_mode.get_active_consent",
            side_effect=RuntimeError("connection reset"),
        ):
            assert resolve_data_mode(MagicMock(), uuid.uuid4()) == DataMode.SHORT

    def test_granted_consent_is_long(self, make, db, now):
        from skolapp.models import DataMode
        from skolapp.services.retention.data_mode import resolve_data_mode

        org = make.org()
        consent = make.consent(org, expires_at=now + timedelta(days=30))

        assert resolve_data_mode(db, consent.student_id, now=now) == DataMode.LONG

    def test_expired_consent_is_short(self, make, db, now):
        from skolapp.models import DataMode
        from skolapp.services.retention.data_mode import resolve_data_mode

        org = make.org()
        consent = make.consent(org, expires_at=now - timedelta(seconds=1))

        assert resolve_data_mode(db, consent.student_id, now=now) == DataMode.SHORT

    def test_no_consent_is_short(self, db, now):
        from skolapp.models import DataMode
        from skolapp.services.retention.data_mode import resolve_data_mode

        assert resolve_data_mode(db, uuid.uuid4(), now=now) == DataMode.SHORT


class TestCreateAttempt:
    """Tests for create_attempt()."""

    def test_persists_resolved_mode(self, make, db, now):
        from skolapp.services.attempt_service import create_attempt

        org = make.org()
        quiz = make.quiz(org)
        consent = make.consent(org, expires_at=now + timedelta(days=30))

        attempt = create_attempt(db, quiz.id, student_id=consent.student_id, now=now)

        assert attempt.data_mode == "long"
        assert attempt.created_at == now

    def test_consent_in_other_org_does_not_apply(self, make, db, now):
        """Consent is checked against the quiz's organization."""
        from skolapp.services.attempt_service import create_attempt

        school_a = make.org(name="A")
        school_b = make.org(name="B")
        consent = make.consent(school_a, expires_at=now + timedelta(days=30))
        quiz = make.quiz(school_b)

        attempt = create_attempt(db, quiz.id, student_id=consent.student_id, now=now)

        assert attempt.data_mode == "short"

    def test_mode_is_not_revisited_after_revocation(self, make, db, now):
        from skolapp.models import Attempt
        from skolapp.services.attempt_service import create_attempt
        from skolapp.services.retention.consent_service import revoke_consent

        org = make.org()
        quiz = make.quiz(org)
        consent = make.consent(org, expires_at=now + timedelta(days=30))
        attempt = create_attempt(db, quiz.id, student_id=consent.student_id, now=now)

        revoke_consent(db, org.id, consent.student_id, now=now)

        assert db.query(Attempt).filter(Attempt.id == attempt.id).one().data_mode == "long"

    def test_quiz_without_org_is_short(self, make, db, now):
        """No organization holds a consent for the quiz, so a consented student still gets short."""
        from skolapp.services.attempt_service import create_attempt

        consent = make.consent(make.org(), expires_at=now + timedelta(days=30))
        quiz = make.quiz(None)

        attempt = create_attempt(db, quiz.id, student_id=consent.student_id, now=now)

        assert attempt.data_mode == "short"

    def test_quiz_without_org_data_is_purged_after_revocation(self, make, db, now):
        from skolapp.models import Attempt
        from skolapp.services.attempt_service import create_attempt
        from skolapp.services.retention.consent_service import revoke_consent
        from skolapp.services.retention.sweep_service import run_retention_sweep

        org = make.org()
        consent = make.consent(org, expires_at=now + timedelta(days=30))
        student_id = consent.student_id
        create_attempt(db, make.quiz(None).id, student_id=student_id, now=now)

        revoke_consent(db, org.id, student_id, now=now)
        run_retention_sweep(db, now=now + timedelta(days=1))

        remaining = db.query(Attempt).filter(Attempt.student_id == student_id, Attempt.data_mode == "long")
        assert remaining.count() == 0

    def test_guest_attempt_is_short(self, make, db, now):
        from skolapp.services.attempt_service import create_attempt

        quiz = make.quiz(make.org())

        attempt = create_attempt(db, quiz.id, student_alias="Gäst 4", now=now)

        assert attempt.data_mode == "short"
        assert attempt.student_id is None

    def test_unknown_quiz_raises(self, db):
        from skolapp.services.attempt_service import create_attempt

        with pytest.raises(ValueError, match="not found"):
            create_attempt(db, uuid.uuid4())


class TestRecordAnswer:
    """Tests for record_answer()."""

    def test_stores_answer(self, make, db):
        from skolapp.services.attempt_service import record_answer

        attempt = make.attempt(make.quiz(make.org()))

        answer = record_answer(db, attempt.id, "q7", {"choice": 2}, is_correct=True)

        assert answer.attempt_id == attempt.id
        assert answer.answer == {"choice": 2}

    def test_unknown_attempt_raises(self, db):
        from skolapp.services.attempt_service import record_answer

        with pytest.raises(ValueError, match="not found"):
            record_answer(db, uuid.uuid4(), "q1", "A")
