# skolapp/services/e2e_cleanup_service.py
"""
E2E test data cleanup.

Removes rows owned by synthetic accounts created by the end-to-end test
suite (users with user_metadata.e2e == "true") once they are older than a
configurable age. Deletion follows FK order, leaf to root:
1. quiz_submissions
2. live_quiz_participants
3. live_quiz_sessions (created by the user)
4. quizzes (created by the user; attempts and answers cascade)
5. user_profiles
6. entitlements

The user identities themselves are not deleted: that requires the auth
admin API, which this job does not hold credentials for.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from skolapp.models import (
    Entitlement,
    LiveQuizParticipant,
    LiveQuizSession,
    Quiz,
    QuizSubmission,
    User,
    UserProfile,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_HOURS = 24

# (label, model, column holding the user id), in deletion order
CLEANUP_STEPS = (
    ("quiz_submissions", QuizSubmission, QuizSubmission.user_id),
    ("live_quiz_participants", LiveQuizParticipant, LiveQuizParticipant.user_id),
    ("live_quiz_sessions", LiveQuizSession, LiveQuizSession.created_by),
    ("quizzes", Quiz, Quiz.created_by),
    ("user_profiles", UserProfile, UserProfile.id),
    ("entitlements", Entitlement, Entitlement.uid),
)


@dataclass
class E2ECleanupResult:
    """Result of an E2E cleanup run."""

    dry_run: bool
    cutoff: datetime
    users: list[dict] = field(default_factory=list)
    deleted: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    skipped_auth_users: int = 0

    @property
    def success(self) -> bool:
        return not self.errors


def find_e2e_users(db: Session, cutoff: datetime) -> list[User]:
    """Find test accounts (e2e flag "true" or true) created before the cutoff."""
    flag = User.user_metadata["e2e"]
    is_e2e = flag.as_string() == "true"
    if db.get_bind().dialect.name == "sqlite":
        # json_extract yields 1 for a JSON true rather than the text "true"
        is_e2e = or_(is_e2e, flag.as_boolean().is_(True))

    return (
        db.query(User)
        .filter(
            is_e2e,
            User.created_at < cutoff,
        )
        .order_by(User.created_at.asc())
        .all()
    )


def cleanup_e2e_test_data(
    db: Session,
    max_age_hours: int = DEFAULT_MAX_AGE_HOURS,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> E2ECleanupResult:
    """
    Delete data owned by E2E test accounts older than max_age_hours.

    Each table is deleted and committed on its own; a failure is logged
    and the remaining tables are still processed. In dry-run mode the
    counts are what would be deleted and nothing is mutated.
    """
    now = now or utcnow()
    cutoff = now - timedelta(hours=max_age_hours)
    result = E2ECleanupResult(dry_run=dry_run, cutoff=cutoff)

    logger.info(
        f"Removing E2E data older than {max_age_hours} hours (cutoff {cutoff.isoformat()}, dry_run={dry_run})",
        extra={"cutoff": cutoff.isoformat(), "dry_run": dry_run},
    )

    users = find_e2e_users(db, cutoff)
    result.users = [
        {"id": str(user.id), "email": user.email, "created_at": user.created_at.isoformat()}
        for user in users
    ]

    if not users:
        logger.info("No E2E users to clean up")
        return result

    for user in users:
        logger.info(
            f"E2E user {user.email} ({user.id}) created {user.created_at.isoformat()}",
            extra={"user_id": str(user.id)},
        )

    user_ids = [user.id for user in users]

    for label, model, column in CLEANUP_STEPS:
        try:
            query = db.query(model).filter(column.in_(user_ids))
            if dry_run:
                count = query.count()
            else:
                count = query.delete(synchronize_session=False)
                db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error cleaning {label}: {e}", extra={"table": label})
            result.errors.append(f"{label}: {e}")
            continue

        result.deleted[label] = count
        logger.info(
            f"{'Would delete' if dry_run else 'Deleted'} {count} row(s) from {label}",
            extra={"table": label, "count": count, "dry_run": dry_run},
        )

    result.skipped_auth_users = len(users)
    logger.warning(
        f"Auth user deletion requires the admin API - {len(users)} identity record(s) left in place",
        extra={"count": len(users)},
    )

    logger.info(
        f"E2E cleanup complete: {len(users)} user(s) processed, {len(result.errors)} error(s) (dry_run={dry_run})",
        extra={"event": "e2e_cleanup_complete", "dry_run": dry_run},
    )
    return result
