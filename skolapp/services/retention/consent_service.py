# skolapp/services/retention/consent_service.py
"""
Guardian consent store.

Handles:
- Looking up the authoritative consent for a student
- Issuing consent invites with one-time tokens
- Guardian accept/decline through the invite token
- Admin revocation
- Per-student consent status across organizations

Purging data after a revocation is not done here; the next retention
sweep picks up revoked and expired consents.
"""

import calendar
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from skolapp.models import (
    OPEN_INVITE_STATUSES,
    ConsentInvite,
    ConsentStatus,
    GuardianConsent,
    InviteStatus,
    utcnow,
)
from skolapp.services.retention.policy_service import resolve_retention_settings

logger = logging.getLogger(__name__)

# Days a guardian has to answer an invite
INVITE_VALID_DAYS = 14


class ConsentError(Exception):
    """Base class for consent flow errors."""


class ConsentNotFoundError(ConsentError):
    """No consent record or invite matches the request."""


class InviteExpiredError(ConsentError):
    """The invite link is past its expiry time."""


class InviteAlreadyUsedError(ConsentError):
    """The invite has already been answered or expired by the sweep."""


class ConsentAlreadyRevokedError(ConsentError):
    """The consent is already revoked."""


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def get_active_consent(
    db: Session,
    student_id: uuid.UUID,
    org_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> Optional[GuardianConsent]:
    """
    Get the authoritative consent for a student.

    Returns the most recently granted consent that has not yet expired,
    optionally limited to one organization.
    """
    now = now or utcnow()

    query = db.query(GuardianConsent).filter(
        GuardianConsent.student_id == student_id,
        GuardianConsent.status == ConsentStatus.GRANTED.value,
        GuardianConsent.expires_at.isnot(None),
        GuardianConsent.expires_at > now,
    )
    if org_id is not None:
        query = query.filter(GuardianConsent.org_id == org_id)

    return query.order_by(GuardianConsent.granted_at.desc()).first()


def _get_consent_record(db: Session, org_id: uuid.UUID, student_id: uuid.UUID) -> Optional[GuardianConsent]:
    return (
        db.query(GuardianConsent)
        .filter(
            GuardianConsent.org_id == org_id,
            GuardianConsent.student_id == student_id,
        )
        .order_by(GuardianConsent.created_at.desc())
        .first()
    )


def _revoke_other_grants(db: Session, consent: GuardianConsent, now: datetime) -> None:
    """Revoke older granted rows of the same (student, org) pair."""
    query = db.query(GuardianConsent).filter(
        GuardianConsent.org_id == consent.org_id,
        GuardianConsent.student_id == consent.student_id,
        GuardianConsent.status == ConsentStatus.GRANTED.value,
    )
    if consent.id is not None:
        query = query.filter(GuardianConsent.id != consent.id)
    query.update(
        {"status": ConsentStatus.REVOKED.value, "revoked_at": now, "updated_at": now},
        synchronize_session=False,
    )


def _get_open_invite(db: Session, token: str, now: datetime) -> ConsentInvite:
    """Load an invite by token and check it can still be answered."""
    invite = db.query(ConsentInvite).filter(ConsentInvite.token == token).first()
    if not invite:
        raise ConsentNotFoundError("Invite not found")

    if invite.expires_at < now:
        raise InviteExpiredError(f"Invite {invite.id} expired at {invite.expires_at}")

    if invite.status not in OPEN_INVITE_STATUSES:
        raise InviteAlreadyUsedError(f"Invite {invite.id} is {invite.status}")

    return invite


def issue_invite(
    db: Session,
    org_id: uuid.UUID,
    student_id: uuid.UUID,
    guardian_email: str,
    sent_by: Optional[uuid.UUID] = None,
    app_url: str = "",
    now: Optional[datetime] = None,
) -> ConsentInvite:
    """
    Ask a guardian for consent.

    Reuses the (student, org) record while it is still pending; otherwise a
    new pending record is added so granted, revoked and expired rows keep
    their status for the retention sweep. Stores a new invite that expires
    after INVITE_VALID_DAYS. The email itself is not sent; the link is logged.
    """
    now = now or utcnow()

    consent = _get_consent_record(db, org_id, student_id)
    if consent and consent.status == ConsentStatus.PENDING.value:
        consent.updated_by = sent_by
    else:
        consent = GuardianConsent(
            org_id=org_id,
            student_id=student_id,
            status=ConsentStatus.PENDING.value,
            created_by=sent_by,
        )
    db.add(consent)

    token = f"consent_{secrets.token_urlsafe(24)}"
    invite = ConsentInvite(
        org_id=org_id,
        student_id=student_id,
        guardian_email=guardian_email,
        token=token,
        status=InviteStatus.SENT.value,
        expires_at=now + timedelta(days=INVITE_VALID_DAYS),
        meta={"sent_by": str(sent_by) if sent_by else None},
        created_at=now,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)

    logger.info(
        f"Consent invite issued to {guardian_email}: {app_url.rstrip('/')}/consent/{token}",
        extra={"invite_id": str(invite.id), "student_id": str(student_id), "org_id": str(org_id)},
    )
    return invite


def mark_invite_visited(db: Session, token: str, now: Optional[datetime] = None) -> ConsentInvite:
    """Record that the guardian opened the consent link."""
    invite = _get_open_invite(db, token, now or utcnow())

    if invite.status == InviteStatus.SENT.value:
        invite.status = InviteStatus.VISITED.value
        db.add(invite)
        db.commit()
        db.refresh(invite)

    return invite


def accept_invite(
    db: Session,
    token: str,
    evidence: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> GuardianConsent:
    """
    Grant consent through an invite token.

    The consent validity window comes from the organization's
    consent_valid_months setting. Only a pending record is updated in
    place; an answered record keeps its status and a new row is added.
    """
    now = now or utcnow()
    invite = _get_open_invite(db, token, now)

    settings = resolve_retention_settings(db, invite.org_id)

    consent = _get_consent_record(db, invite.org_id, invite.student_id)
    if consent is None or consent.status != ConsentStatus.PENDING.value:
        consent = GuardianConsent(org_id=invite.org_id, student_id=invite.student_id)

    consent.status = ConsentStatus.GRANTED.value
    consent.granted_at = now
    consent.expires_at = add_months(now, settings.consent_valid_months)
    consent.revoked_at = None
    consent.method = "email"
    consent.evidence = {**(evidence or {}), "token": token, "accepted_at": now.isoformat()}
    db.add(consent)

    invite.status = InviteStatus.COMPLETED.value
    invite.completed_at = now
    db.add(invite)

    db.commit()
    db.refresh(consent)

    logger.info(
        f"Consent granted for student {invite.student_id} until {consent.expires_at}",
        extra={"consent_id": str(consent.id), "student_id": str(invite.student_id), "org_id": str(invite.org_id)},
    )
    return consent


def decline_invite(
    db: Session,
    token: str,
    evidence: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> GuardianConsent:
    """Decline consent through an invite token. The consent becomes revoked."""
    now = now or utcnow()
    invite = _get_open_invite(db, token, now)

    consent = _get_consent_record(db, invite.org_id, invite.student_id)
    if consent is None or consent.status != ConsentStatus.PENDING.value:
        consent = GuardianConsent(org_id=invite.org_id, student_id=invite.student_id)

    consent.status = ConsentStatus.REVOKED.value
    consent.revoked_at = now
    consent.method = "email"
    consent.evidence = {**(evidence or {}), "token": token, "declined_at": now.isoformat()}
    db.add(consent)
    _revoke_other_grants(db, consent, now)

    invite.status = InviteStatus.COMPLETED.value
    invite.completed_at = now
    db.add(invite)

    db.commit()
    db.refresh(consent)

    logger.info(
        f"Consent declined for student {invite.student_id}",
        extra={"consent_id": str(consent.id), "student_id": str(invite.student_id), "org_id": str(invite.org_id)},
    )
    return consent


def revoke_consent(
    db: Session,
    org_id: uuid.UUID,
    student_id: uuid.UUID,
    revoked_by: Optional[uuid.UUID] = None,
    reason: str = "Admin override",
    now: Optional[datetime] = None,
) -> GuardianConsent:
    """
    Revoke a student's consent in an organization (admin override).

    Long-term data is purged by the next retention sweep, not here.
    """
    now = now or utcnow()

    consent = _get_consent_record(db, org_id, student_id)
    if not consent:
        raise ConsentNotFoundError(f"No consent record for student {student_id} in org {org_id}")

    if consent.status == ConsentStatus.REVOKED.value:
        raise ConsentAlreadyRevokedError(f"Consent {consent.id} is already revoked")

    consent.status = ConsentStatus.REVOKED.value
    consent.revoked_at = now
    consent.method = "admin-override"
    consent.evidence = {
        **(consent.evidence or {}),
        "admin_revoked_by": str(revoked_by) if revoked_by else None,
        "admin_revoked_at": now.isoformat(),
        "revocation_reason": reason,
    }
    consent.updated_by = revoked_by
    db.add(consent)
    _revoke_other_grants(db, consent, now)
    db.commit()
    db.refresh(consent)

    logger.info(
        f"Consent revoked for student {student_id} in org {org_id}",
        extra={"consent_id": str(consent.id), "student_id": str(student_id), "org_id": str(org_id)},
    )
    return consent


def get_consent_status(
    db: Session,
    student_id: uuid.UUID,
    org_ids: list[uuid.UUID],
    now: Optional[datetime] = None,
) -> dict:
    """
    Summarize a student's consent across the given organizations.

    A granted consent past its expiry is reported as expired even before
    the sweep has rewritten its status.
    """
    now = now or utcnow()
    if not org_ids:
        return {
            "student_id": str(student_id),
            "consents": [],
            "requires_consent_for_long_term": False,
            "has_valid_consent": False,
        }

    consents = (
        db.query(GuardianConsent)
        .filter(
            GuardianConsent.student_id == student_id,
            GuardianConsent.org_id.in_(org_ids),
        )
        .order_by(GuardianConsent.created_at.desc())
        .all()
    )

    entries = []
    for consent in consents:
        settings = resolve_retention_settings(db, consent.org_id)
        is_expired = consent.expires_at is not None and consent.expires_at < now
        entries.append(
            {
                "id": str(consent.id),
                "org_id": str(consent.org_id),
                "status": ConsentStatus.EXPIRED.value if is_expired else consent.status,
                "granted_at": consent.granted_at,
                "expires_at": consent.expires_at,
                "method": consent.method,
                "requires_consent": settings.require_guardian_consent,
            }
        )

    return {
        "student_id": str(student_id),
        "consents": entries,
        "requires_consent_for_long_term": any(e["requires_consent"] for e in entries),
        "has_valid_consent": any(
            e["status"] == ConsentStatus.GRANTED.value and e["expires_at"] and e["expires_at"] > now
            for e in entries
        ),
    }
