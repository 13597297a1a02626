# skolapp/models.py
"""
Skolapp consent & retention database models

Tables:
- Organization / OrgSettings: schools and their retention configuration
- GuardianConsent: guardian permission to keep a student's data long-term
- ConsentInvite: emailed consent requests with a one-time token
- Quiz / Attempt / Answer: student quiz data subject to retention
- User and user-owned rows (profiles, submissions, live sessions,
  entitlements) touched by the E2E test-data sweep
"""

from datetime import UTC, datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from skolapp.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation used by every DateTime column."""
    return datetime.now(UTC).replace(tzinfo=None)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class ConsentStatus(str, Enum):
    """Guardian consent lifecycle."""
    PENDING = "pending"     # Invite sent, no answer yet
    GRANTED = "granted"
    REVOKED = "revoked"     # Terminal: guardian declined or admin override
    EXPIRED = "expired"     # Terminal: validity window passed


class InviteStatus(str, Enum):
    """Consent invite lifecycle."""
    SENT = "sent"
    VISITED = "visited"
    EXPIRED = "expired"
    COMPLETED = "completed"


class DataMode(str, Enum):
    """Retention mode fixed on an attempt when it is created."""
    SHORT = "short"  # Korttid: purged after the org's retention window
    LONG = "long"    # Kept while guardian consent is valid


# Invite states that can still be answered
OPEN_INVITE_STATUSES = (InviteStatus.SENT.value, InviteStatus.VISITED.value)

# Consent states whose long-term data must be purged
TERMINAL_CONSENT_STATUSES = (ConsentStatus.REVOKED.value, ConsentStatus.EXPIRED.value)


# -----------------------------------------------------------------------------
# Organizations
# -----------------------------------------------------------------------------

class Organization(Base):
    """A school or municipality account."""
    __tablename__ = "orgs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    settings = relationship("OrgSettings", back_populates="org", uselist=False)
    quizzes = relationship("Quiz", back_populates="org")

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"


class OrgSettings(Base):
    """
    Per-organization retention configuration.

    Missing rows and null fields fall back to the defaults in
    skolapp.services.retention.policy_service.
    """
    __tablename__ = "org_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("orgs.id", ondelete="CASCADE"), unique=True, nullable=False)
    retention_korttid_days = Column(Integer, nullable=True, default=30)
    consent_valid_months = Column(Integer, nullable=True, default=12)
    require_guardian_consent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    org = relationship("Organization", back_populates="settings")


# -----------------------------------------------------------------------------
# Consent
# -----------------------------------------------------------------------------

class GuardianConsent(Base):
    """
    Guardian consent for long-term storage of a student's quiz data.

    Uniqueness per (student, org) is not enforced; the most recent
    granted and unexpired row is authoritative.
    """
    __tablename__ = "guardian_consents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, nullable=False, index=True)
    org_id = Column(Uuid, ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ConsentStatus.PENDING.value)
    granted_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    method = Column(String(32), nullable=True)  # email, admin-override
    evidence = Column(JSON, nullable=True)
    created_by = Column(Uuid, nullable=True)
    updated_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_guardian_consents_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<GuardianConsent {self.student_id} {self.status}>"


class ConsentInvite(Base):
    """Emailed request for guardian consent, answered through a token link."""
    __tablename__ = "consent_invites"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Uuid, nullable=False, index=True)
    guardian_email = Column(String(320), nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    status = Column(String(16), nullable=False, default=InviteStatus.SENT.value)
    expires_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_consent_invites_status_expires", "status", "expires_at"),
    )


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------

class User(Base):
    """Account identity. `user_metadata["e2e"]` marks synthetic test accounts."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False)
    user_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Uuid, ForeignKey("users.id"), primary_key=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Entitlement(Base):
    """AI usage quota per user."""
    __tablename__ = "entitlements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    plan = Column(String(32), nullable=True)
    quota_remaining = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# -----------------------------------------------------------------------------
# Quizzes
# -----------------------------------------------------------------------------

class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("orgs.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    org = relationship("Organization", back_populates="quizzes")
    attempts = relationship("Attempt", back_populates="quiz", cascade="all, delete-orphan", passive_deletes=True)


class Attempt(Base):
    """
    One student's run through a quiz.

    data_mode is decided once, at creation, from the consent state at
    that instant and is never rewritten afterwards.
    """
    __tablename__ = "attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, nullable=True, index=True)  # None for guests
    student_alias = Column(String(64), nullable=True)
    data_mode = Column(String(8), nullable=False, default=DataMode.SHORT.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    quiz = relationship("Quiz", back_populates="attempts")
    answers = relationship("Answer", back_populates="attempt", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("ix_attempts_data_mode_created", "data_mode", "created_at"),
    )


class Answer(Base):
    """Answer to a single question; removed by FK cascade with its attempt."""
    __tablename__ = "answers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    attempt_id = Column(Uuid, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(64), nullable=False)
    answer = Column(JSON, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    attempt = relationship("Attempt", back_populates="answers")


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=True)
    score = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class LiveQuizSession(Base):
    __tablename__ = "live_quiz_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    pin = Column(String(16), nullable=True)
    status = Column(String(16), nullable=False, default="lobby")
    created_at = Column(DateTime, default=utcnow, nullable=False)


class LiveQuizParticipant(Base):
    __tablename__ = "live_quiz_participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("live_quiz_sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    display_name = Column(Text, nullable=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)
