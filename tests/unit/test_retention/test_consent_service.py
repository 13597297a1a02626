# tests/unit/test_retention/test_consent_service.py
"""Unit tests for guardian consent store."""

import uuid
from datetime import datetime, timedelta

import pytest


class TestAddMonths:
    """Tests for add_months()."""

    def test_adds_calendar_months(self):
        from skolapp.services.retention.consent_service import add_months

        assert add_months(datetime(2026, 3, 15, 12), 12) == datetime(2027, 3, 15, 12)

    def test_clamps_to_end_of_month(self):
        """Jan 31 + 1 month lands on the last day of February."""
        from skolapp.services.retention.consent_service import add_months

        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)

    def test_rolls_over_year(self):
        from skolapp.services.retention.consent_service import add_months

        assert add_months(datetime(2026, 11, 1), 3) == datetime(2027, 2, 1)


class TestGetActiveConsent:
    """Tests for get_active_consent()."""

    def test_returns_granted_unexpired_consent(self, make, db, now):
        from skolapp.services.retention.consent_service import get_active_consent

        org = make.org()
        consent = make.consent(org, expires_at=now + timedelta(days=30))

        assert get_active_consent(db, consent.student_id, now=now).id == consent.id

    def test_ignores_expired_consent(self, make, db, now):
        """A granted row past expires_at is not active, even before the sweep runs."""
        from skolapp.services.retention.consent_service import get_active_consent

        org = make.org()
        consent = make.consent(org, expires_at=now - timedelta(seconds=1))

        assert get_active_consent(db, consent.student_id, now=now) is None

    def test_ignores_revoked_and_pending(self, make, db, now):
        from skolapp.services.retention.consent_service import get_active_consent

        org = make.org()
        student_id = uuid.uuid4()
        make.consent(org, student_id=student_id, status="revoked", expires_at=now + timedelta(days=30))
        make.consent(org, student_id=student_id, status="pending", granted_at=None)

        assert get_active_consent(db, student_id, now=now) is None

    def test_most_recent_grant_wins(self, make, db, now):
        from skolapp.services.retention.consent_service import get_active_consent

        school_a = make.org(name="A")
        school_b = make.org(name="B")
        student_id = uuid.uuid4()
        make.consent(school_a, student_id=student_id, granted_at=now - timedelta(days=60), expires_at=now + timedelta(days=300))
        newest = make.consent(school_b, student_id=student_id, granted_at=now - timedelta(days=1), expires_at=now + timedelta(days=360))

        assert get_active_consent(db, student_id, now=now).id == newest.id

    def test_scoped_to_org(self, make, db, now):
        from skolapp.services.retention.consent_service import get_active_consent

        school_a = make.org(name="A")
        school_b = make.org(name="B")
        consent = make.consent(school_a, expires_at=now + timedelta(days=30))

        assert get_active_consent(db, consent.student_id, org_id=school_b.id, now=now) is None
        assert get_active_consent(db, consent.student_id, org_id=school_a.id, now=now) is not None


class TestIssueInvite:
    """Tests for issue_invite()."""

    def test_creates_pending_consent_and_invite(self, make, db, now):
        from skolapp.models import GuardianConsent
        from skolapp.services.retention.consent_service import issue_invite

        org = make.org()
        student_id = uuid.uuid4()

        invite = issue_invite(db, org.id, student_id, "vardnadshavare@example.se", now=now)

        assert invite.token.startswith("consent_")
        assert invite.status == "sent"
        assert invite.expires_at == now + timedelta(days=14)

        consent = db.query(GuardianConsent).filter(GuardianConsent.student_id == student_id).one()
        assert consent.status == "pending"

    def test_reuses_pending_record(self, make, db, now):
        from skolapp.models import GuardianConsent
        from skolapp.services.retention.consent_service import issue_invite

        org = make.org()
        consent = make.consent(org, status="pending", granted_at=None)

        issue_invite(db, org.id, consent.student_id, "vardnadshavare@example.se", now=now)

        rows = db.query(GuardianConsent).filter(GuardianConsent.student_id == consent.student_id).all()
        assert len(rows) == 1
        assert rows[0].status == "pending"

    def test_terminal_record_keeps_its_status(self, make, db, now):
        """Re-inviting after expiry adds a pending row and leaves the expired one for the sweep."""
        from skolapp.models import GuardianConsent
        from skolapp.services.retention.consent_service import issue_invite

        org = make.org()
        consent = make.consent(org, status="expired", expires_at=now - timedelta(days=1))
        student_id = consent.student_id

        issue_invite(db, org.id, student_id, "vardnadshavare@example.se", now=now)

        statuses = sorted(
            row.status for row in db.query(GuardianConsent).filter(GuardianConsent.student_id == student_id)
        )
        assert statuses == ["expired", "pending"]

    def test_reinvite_after_revocation_still_purges(self, make, db, now):
        """Revoke, re-invite with no answer, sweep: the long-term attempts are gone."""
        from skolapp.models import Attempt
        from skolapp.services.retention.consent_service import issue_invite, revoke_consent
        from skolapp.services.retention.sweep_service import run_retention_sweep

        org = make.org()
        consent = make.consent(org, expires_at=now + timedelta(days=200))
        student_id = consent.student_id
        make.attempt(make.quiz(org), data_mode="long", student_id=student_id)

        revoke_consent(db, org.id, student_id, now=now)
        issue_invite(db, org.id, student_id, "vardnadshavare@example.se", now=now)
        result = run_retention_sweep(db, now=now + timedelta(days=1))

        assert result.long_attempts_deleted == 1
        assert db.query(Attempt).filter(Attempt.student_id == student_id).count() == 0


class TestAcceptInvite:
    """Tests for accept_invite()."""

    def test_grants_consent_for_org_validity_window(self, make, db, now):
        from skolapp.services.retention.consent_service import accept_invite

        org = make.org(consent_valid_months=6)
        invite = make.invite(org, expires_at=now + timedelta(days=14))

        consent = accept_invite(db, invite.token, evidence={"ip_address": "10.0.0.1"}, now=now)

        assert consent.status == "granted"
        assert consent.granted_at == now
        assert consent.expires_at == datetime(2026, 9, 15, 12, 0, 0)
        assert consent.evidence["ip_address"] == "10.0.0.1"

        db.refresh(invite)
        assert invite.status == "completed"
        assert invite.completed_at == now

    def test_unknown_token_raises_not_found(self, db, now):
        from skolapp.services.retention.consent_service import ConsentNotFoundError, accept_invite

        with pytest.raises(ConsentNotFoundError):
            accept_invite(db, "consent_does-not-exist", now=now)

    def test_expired_invite_raises(self, make, db, now):
        from skolapp.services.retention.consent_service import InviteExpiredError, accept_invite

        org = make.org()
        invite = make.invite(org, expires_at=now - timedelta(seconds=1))

        with pytest.raises(InviteExpiredError):
            accept_invite(db, invite.token, now=now)

    def test_used_invite_raises(self, make, db, now):
        from skolapp.services.retention.consent_service import InviteAlreadyUsedError, accept_invite

        org = make.org()
        invite = make.invite(org, status="completed", expires_at=now + timedelta(days=3))

        with pytest.raises(InviteAlreadyUsedError):
            accept_invite(db, invite.token, now=now)


class TestDeclineInvite:
    """Tests for decline_invite()."""

    def test_declined_consent_is_revoked(self, make, db, now):
        from skolapp.services.retention.consent_service import decline_invite

        org = make.org()
        invite = make.invite(org, expires_at=now + timedelta(days=14))

        consent = decline_invite(db, invite.token, now=now)

        assert consent.status == "revoked"
        assert consent.revoked_at == now

    def test_decline_of_renewal_revokes_earlier_grant(self, make, db, now):
        from skolapp.models import GuardianConsent
        from skolapp.services.retention.consent_service import decline_invite, get_active_consent, issue_invite

        org = make.org()
        student_id = make.consent(org, expires_at=now + timedelta(days=30)).student_id
        invite = issue_invite(db, org.id, student_id, "vardnadshavare@example.se", now=now)

        decline_invite(db, invite.token, now=now)

        statuses = [row.status for row in db.query(GuardianConsent).filter(GuardianConsent.student_id == student_id)]
        assert statuses == ["revoked", "revoked"]
        assert get_active_consent(db, student_id, org_id=org.id, now=now) is None


class TestRevokeConsent:
    """Tests for revoke_consent()."""

    def test_revokes_and_records_evidence(self, make, db, now):
        from skolapp.services.retention.consent_service import revoke_consent

        org = make.org()
        admin_id = uuid.uuid4()
        consent = make.consent(org, expires_at=now + timedelta(days=100))

        revoked = revoke_consent(db, org.id, consent.student_id, revoked_by=admin_id, now=now)

        assert revoked.status == "revoked"
        assert revoked.method == "admin-override"
        assert revoked.evidence["admin_revoked_by"] == str(admin_id)
        assert revoked.evidence["revocation_reason"] == "Admin override"

    def test_missing_record_raises(self, make, db, now):
        from skolapp.services.retention.consent_service import ConsentNotFoundError, revoke_consent

        org = make.org()

        with pytest.raises(ConsentNotFoundError):
            revoke_consent(db, org.id, uuid.uuid4(), now=now)

    def test_already_revoked_raises(self, make, db, now):
        from skolapp.services.retention.consent_service import ConsentAlreadyRevokedError, revoke_consent

        org = make.org()
        consent = make.consent(org, status="revoked")

        with pytest.raises(ConsentAlreadyRevokedError):
            revoke_consent(db, org.id, consent.student_id, now=now)


class TestGetConsentStatus:
    """Tests for get_consent_status()."""

    def test_reports_lapsed_grant_as_expired(self, make, db, now):
        from skolapp.services.retention.consent_service import get_consent_status

        org = make.org(require_guardian_consent=True)
        consent = make.consent(org, expires_at=now - timedelta(days=1))

        status = get_consent_status(db, consent.student_id, [org.id], now=now)

        assert status["consents"][0]["status"] == "expired"
        assert status["has_valid_consent"] is False
        assert status["requires_consent_for_long_term"] is True

    def test_only_lists_requested_orgs(self, make, db, now):
        from skolapp.services.retention.consent_service import get_consent_status

        school_a = make.org(name="A")
        school_b = make.org(name="B")
        student_id = uuid.uuid4()
        make.consent(school_a, student_id=student_id, expires_at=now + timedelta(days=30))
        make.consent(school_b, student_id=student_id, status="revoked")

        status = get_consent_status(db, student_id, [school_a.id], now=now)

        assert [entry["org_id"] for entry in status["consents"]] == [str(school_a.id)]
        assert status["has_valid_consent"] is True

    def test_no_orgs_returns_empty_status(self, db, now):
        from skolapp.services.retention.consent_service import get_consent_status

        status = get_consent_status(db, uuid.uuid4(), [], now=now)

        assert status["consents"] == []
        assert status["has_valid_consent"] is False
