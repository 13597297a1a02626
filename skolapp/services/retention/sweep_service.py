# skolapp/services/retention/sweep_service.py
"""
GDPR retention sweep.

One pass enforces every retention rule against the current time:
1. Expire granted consents past expires_at
2. Expire unanswered consent invites past expires_at
3. Purge short-mode attempts older than each organization's window
4. Purge long-mode attempts for students whose consent was revoked or expired
5. Log summary statistics

Every predicate is an absolute timestamp comparison, so the sweep is
idempotent and overlapping runs converge on the same end state. Each step,
each organization in step 3, and each consent in step 4 is its own unit of
work: a failure is logged, rolled back, and the sweep moves on.
Answers are removed by the attempts FK cascade.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from skolapp.logging_config import log_step
from skolapp.models import (
    OPEN_INVITE_STATUSES,
    TERMINAL_CONSENT_STATUSES,
    Attempt,
    ConsentInvite,
    ConsentStatus,
    DataMode,
    GuardianConsent,
    InviteStatus,
    Quiz,
    utcnow,
)
from skolapp.services.retention.consent_service import get_active_consent
from skolapp.services.retention.policy_service import (
    DEFAULT_RETENTION_KORTTID_DAYS,
    list_org_retention,
)

logger = logging.getLogger(__name__)

# Key used in per-org counts for attempts on quizzes without an organization
UNAFFILIATED = "unaffiliated"


@dataclass
class SweepResult:
    """Result of a retention sweep."""

    success: bool = True
    dry_run: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    consents_expired: int = 0
    invites_expired: int = 0
    short_attempts_deleted: int = 0
    long_attempts_deleted: int = 0
    short_attempts_by_org: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    def record_error(self, message: str) -> None:
        self.errors.append(message)
        self.success = False


# -----------------------------------------------------------------------------
# Step 1: consents
# -----------------------------------------------------------------------------


def expire_consents(db: Session, now: Optional[datetime] = None, dry_run: bool = False) -> list:
    """
    Mark granted consents whose expires_at has passed as expired.

    Returns (id, student_id, org_id) rows for every consent that was (or,
    in dry-run mode, would be) expired.
    """
    now = now or utcnow()

    expired = (
        db.query(GuardianConsent.id, GuardianConsent.student_id, GuardianConsent.org_id)
        .filter(
            GuardianConsent.status == ConsentStatus.GRANTED.value,
            GuardianConsent.expires_at < now,
        )
        .all()
    )

    if not expired:
        logger.info("No consents to expire")
        return []

    if not dry_run:
        db.query(GuardianConsent).filter(
            GuardianConsent.id.in_([row.id for row in expired]),
            GuardianConsent.status == ConsentStatus.GRANTED.value,
        ).update(
            {"status": ConsentStatus.EXPIRED.value, "updated_at": now},
            synchronize_session=False,
        )
        db.commit()

    for row in expired:
        logger.info(
            f"Expired consent for student {row.student_id} in org {row.org_id}",
            extra={"consent_id": str(row.id), "student_id": str(row.student_id), "org_id": str(row.org_id)},
        )
    logger.info(
        f"{'Would expire' if dry_run else 'Expired'} {len(expired)} consent(s)",
        extra={"count": len(expired), "dry_run": dry_run},
    )
    return expired


# -----------------------------------------------------------------------------
# Step 2: invites
# -----------------------------------------------------------------------------


def expire_invites(db: Session, now: Optional[datetime] = None, dry_run: bool = False) -> int:
    """Mark sent/visited invites whose expires_at has passed as expired."""
    now = now or utcnow()

    invite_ids = [
        row.id
        for row in db.query(ConsentInvite.id)
        .filter(
            ConsentInvite.status.in_(OPEN_INVITE_STATUSES),
            ConsentInvite.expires_at < now,
        )
        .all()
    ]

    if not invite_ids:
        logger.info("No invites to expire")
        return 0

    if not dry_run:
        db.query(ConsentInvite).filter(
            ConsentInvite.id.in_(invite_ids),
            ConsentInvite.status.in_(OPEN_INVITE_STATUSES),
        ).update({"status": InviteStatus.EXPIRED.value}, synchronize_session=False)
        db.commit()

    logger.info(
        f"{'Would expire' if dry_run else 'Expired'} {len(invite_ids)} invite(s)",
        extra={"count": len(invite_ids), "dry_run": dry_run},
    )
    return len(invite_ids)


# -----------------------------------------------------------------------------
# Step 3: short-term attempts
# -----------------------------------------------------------------------------


def _delete_or_count(query, dry_run: bool) -> int:
    if dry_run:
        return query.count()
    return query.delete(synchronize_session=False)


def _purge_short_for_quizzes(db: Session, quiz_ids, cutoff: datetime, dry_run: bool) -> int:
    query = db.query(Attempt).filter(
        Attempt.data_mode == DataMode.SHORT.value,
        Attempt.created_at < cutoff,
        Attempt.quiz_id.in_(quiz_ids),
    )
    count = _delete_or_count(query, dry_run)
    if not dry_run:
        db.commit()
    return count


def purge_short_term_attempts(
    db: Session,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    result: Optional[SweepResult] = None,
) -> int:
    """
    Delete short-mode attempts older than their organization's window.

    The window is retention_korttid_days from org_settings (default 30).
    Each organization is processed and committed on its own; a failure
    for one organization, including a stored window below one day, is
    recorded on `result` and the loop continues.
    Attempts on quizzes without an organization use the default window.
    """
    now = now or utcnow()
    result = result if result is not None else SweepResult(dry_run=dry_run)
    total = 0

    for org, settings in list_org_retention(db):
        try:
            if settings.retention_korttid_days < 1:
                raise ValueError(f"retention_korttid_days is {settings.retention_korttid_days}, must be at least 1")
            cutoff = now - timedelta(days=settings.retention_korttid_days)
            quiz_ids = select(Quiz.id).where(Quiz.org_id == org.id)
            count = _purge_short_for_quizzes(db, quiz_ids, cutoff, dry_run)
        except Exception as e:
            db.rollback()
            logger.error(
                f"Failed to purge short-term attempts for org {org.id}: {e}",
                extra={"org_id": str(org.id)},
            )
            result.record_error(f"Org {org.id}: {e}")
            continue

        total += count
        result.short_attempts_by_org[str(org.id)] = count
        logger.info(
            f"Org {org.name}: {'would delete' if dry_run else 'deleted'} {count} short-term attempt(s) "
            f"({settings.retention_korttid_days} day retention)",
            extra={
                "org_id": str(org.id),
                "count": count,
                "retention_days": settings.retention_korttid_days,
                "cutoff": cutoff.isoformat(),
            },
        )

    try:
        cutoff = now - timedelta(days=DEFAULT_RETENTION_KORTTID_DAYS)
        quiz_ids = select(Quiz.id).where(Quiz.org_id.is_(None))
        count = _purge_short_for_quizzes(db, quiz_ids, cutoff, dry_run)
        total += count
        result.short_attempts_by_org[UNAFFILIATED] = count
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to purge short-term attempts for quizzes without an organization: {e}")
        result.record_error(f"{UNAFFILIATED}: {e}")

    result.short_attempts_deleted += total
    return total


# -----------------------------------------------------------------------------
# Step 4: long-term attempts after revocation/expiry
# -----------------------------------------------------------------------------


def _purge_long_for_consent(db: Session, student_id: uuid.UUID, org_id: uuid.UUID, dry_run: bool) -> int:
    quiz_ids = select(Quiz.id).where(Quiz.org_id == org_id)
    query = db.query(Attempt).filter(
        Attempt.student_id == student_id,
        Attempt.data_mode == DataMode.LONG.value,
        Attempt.quiz_id.in_(quiz_ids),
    )
    count = _delete_or_count(query, dry_run)
    if not dry_run:
        db.commit()
    return count


def _purge_long_without_org(db: Session, dry_run: bool) -> int:
    # The quiz's organization is gone, and its consents went with it
    quiz_ids = select(Quiz.id).where(Quiz.org_id.is_(None))
    query = db.query(Attempt).filter(
        Attempt.data_mode == DataMode.LONG.value,
        Attempt.quiz_id.in_(quiz_ids),
    )
    count = _delete_or_count(query, dry_run)
    if not dry_run:
        db.commit()
    return count


def purge_revoked_consent_data(
    db: Session,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    result: Optional[SweepResult] = None,
) -> int:
    """
    Delete long-mode attempts for students whose consent is revoked or expired.

    Deletion is scoped to the consent's organization: a revocation in one
    school never removes data held under a valid consent in another. A
    (student, org) pair that has since been granted a fresh, unexpired
    consent is left alone. Each consent is its own unit of work.

    Long-mode attempts on quizzes without an organization have no consent
    backing them and are deleted as a final unit of work.
    """
    now = now or utcnow()
    result = result if result is not None else SweepResult(dry_run=dry_run)
    total = 0

    # Granted rows past expiry count too: a dry run never rewrites them in step 1
    consents = (
        db.query(GuardianConsent.id, GuardianConsent.student_id, GuardianConsent.org_id, GuardianConsent.status)
        .filter(
            or_(
                GuardianConsent.status.in_(TERMINAL_CONSENT_STATUSES),
                and_(
                    GuardianConsent.status == ConsentStatus.GRANTED.value,
                    GuardianConsent.expires_at < now,
                ),
            )
        )
        .all()
    )

    if not consents:
        logger.info("No revoked/expired consents to process")

    for consent in consents:
        context = {
            "consent_id": str(consent.id),
            "student_id": str(consent.student_id),
            "org_id": str(consent.org_id),
        }
        try:
            if get_active_consent(db, consent.student_id, org_id=consent.org_id, now=now) is not None:
                logger.debug(f"Student {consent.student_id} has a newer valid consent, skipping", extra=context)
                continue

            count = _purge_long_for_consent(db, consent.student_id, consent.org_id, dry_run)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete data for student {consent.student_id}: {e}", extra=context)
            result.record_error(f"Consent {consent.id} (student {consent.student_id}, org {consent.org_id}): {e}")
            continue

        total += count
        if count:
            logger.info(
                f"{'Would delete' if dry_run else 'Deleted'} {count} long-term attempt(s) "
                f"for student {consent.student_id} ({consent.status} consent)",
                extra={**context, "count": count},
            )

    try:
        orphaned = _purge_long_without_org(db, dry_run)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete long-term attempts on quizzes without an organization: {e}")
        result.record_error(f"{UNAFFILIATED}: {e}")
    else:
        total += orphaned
        if orphaned:
            logger.info(
                f"{'Would delete' if dry_run else 'Deleted'} {orphaned} long-term attempt(s) "
                f"on quizzes without an organization",
                extra={"count": orphaned},
            )

    result.long_attempts_deleted += total
    return total


# -----------------------------------------------------------------------------
# Step 5: statistics
# -----------------------------------------------------------------------------


def collect_retention_stats(db: Session) -> dict:
    """Count consents and attempts by retention-relevant state."""
    total_consents = db.query(func.count(GuardianConsent.id)).scalar() or 0
    active_consents = (
        db.query(func.count(GuardianConsent.id))
        .filter(GuardianConsent.status == ConsentStatus.GRANTED.value)
        .scalar()
    ) or 0
    short_attempts = (
        db.query(func.count(Attempt.id)).filter(Attempt.data_mode == DataMode.SHORT.value).scalar()
    ) or 0
    long_attempts = (
        db.query(func.count(Attempt.id)).filter(Attempt.data_mode == DataMode.LONG.value).scalar()
    ) or 0

    return {
        "total_consents": total_consents,
        "active_consents": active_consents,
        "short_term_attempts": short_attempts,
        "long_term_attempts": long_attempts,
    }


def _log_stats(db: Session, result: SweepResult) -> None:
    try:
        result.stats = collect_retention_stats(db)
    except Exception as e:
        # Statistics are informational only
        db.rollback()
        logger.warning(f"Failed to collect retention stats: {e}")
        return

    logger.info(
        "Current stats: "
        + ", ".join(f"{key}={value}" for key, value in result.stats.items()),
        extra={"event": "retention_stats"},
    )


# -----------------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------------


def run_retention_sweep(
    db: Session,
    now: Optional[datetime] = None,
    dry_run: bool = False,
) -> SweepResult:
    """
    Run every retention step in order.

    A step that raises is logged, rolled back and recorded in
    result.errors; later steps still run. Completing the sequence is the
    only success signal the caller gets, so operators should read the
    errors list (or logs) for partial failures.
    """
    now = now or utcnow()
    result = SweepResult(dry_run=dry_run, started_at=now)

    def _expire_consents():
        result.consents_expired = len(expire_consents(db, now=now, dry_run=dry_run))

    def _expire_invites():
        result.invites_expired = expire_invites(db, now=now, dry_run=dry_run)

    steps = [
        ("expire_consents", _expire_consents),
        ("expire_invites", _expire_invites),
        ("purge_short_term_attempts", lambda: purge_short_term_attempts(db, now=now, dry_run=dry_run, result=result)),
        ("purge_revoked_consent_data", lambda: purge_revoked_consent_data(db, now=now, dry_run=dry_run, result=result)),
    ]

    for name, step in steps:
        try:
            with log_step(name):
                step()
        except Exception as e:
            db.rollback()
            result.record_error(f"{name}: {e}")

    with log_step("stats"):
        _log_stats(db, result)

    result.finished_at = utcnow()
    logger.info(
        f"Retention sweep complete: {result.consents_expired} consents expired, "
        f"{result.invites_expired} invites expired, "
        f"{result.short_attempts_deleted} short-term and {result.long_attempts_deleted} long-term "
        f"attempts {'would be ' if dry_run else ''}deleted, {len(result.errors)} error(s) (dry_run={dry_run})",
        extra={"event": "sweep_complete", "dry_run": dry_run},
    )
    return result


def dry_run_sweep(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Preview what a sweep would change without making changes.
    """
    result = run_retention_sweep(db, now=now, dry_run=True)
    return {
        "dry_run": True,
        "would_expire_consents": result.consents_expired,
        "would_expire_invites": result.invites_expired,
        "would_delete_short_attempts": result.short_attempts_deleted,
        "would_delete_long_attempts": result.long_attempts_deleted,
        "short_attempts_by_org": result.short_attempts_by_org,
        "errors": result.errors,
    }
