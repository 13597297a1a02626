# skolapp/schemas/consents.py
"""
Schemas for guardian consent and attempt endpoints.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# -----------------------------------------------------------------------------
# Consents
# -----------------------------------------------------------------------------


class ConsentInviteRequest(BaseModel):
    """Ask a guardian for consent."""

    org_id: uuid.UUID
    student_id: uuid.UUID
    guardian_email: str = Field(..., min_length=3, max_length=320)
    sent_by: uuid.UUID | None = None


class ConsentInviteResponse(BaseModel):
    success: bool = True
    message: str
    invite_id: str
    token: str
    guardian_email: str
    expires_at: datetime


class ConsentTokenRequest(BaseModel):
    """Guardian answer through the invite link."""

    token: str = Field(..., min_length=1)


class ConsentRevokeRequest(BaseModel):
    org_id: uuid.UUID
    student_id: uuid.UUID
    revoked_by: uuid.UUID | None = None


class ConsentActionResponse(BaseModel):
    success: bool = True
    message: str
    student_id: str
    org_id: str
    status: str
    expires_at: datetime | None = None


class ConsentEntry(BaseModel):
    id: str
    org_id: str
    status: str
    granted_at: datetime | None = None
    expires_at: datetime | None = None
    method: str | None = None
    requires_consent: bool


class ConsentStatusResponse(BaseModel):
    student_id: str
    consents: list[ConsentEntry]
    requires_consent_for_long_term: bool
    has_valid_consent: bool


# -----------------------------------------------------------------------------
# Attempts
# -----------------------------------------------------------------------------


class AttemptCreateRequest(BaseModel):
    quiz_id: uuid.UUID
    student_id: uuid.UUID | None = None
    student_alias: str | None = Field(None, max_length=64)


class AttemptResponse(BaseModel):
    id: str
    quiz_id: str
    student_id: str | None
    data_mode: str
    created_at: datetime


class AnswerRequest(BaseModel):
    question_id: str = Field(..., min_length=1, max_length=64)
    answer: Any
    is_correct: bool | None = None
    user_id: uuid.UUID | None = None


class AnswerResponse(BaseModel):
    success: bool = True
    id: str
    submitted_at: datetime
