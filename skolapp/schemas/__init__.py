# skolapp/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.
"""

from skolapp.schemas.consents import (
    AnswerRequest,
    AnswerResponse,
    AttemptCreateRequest,
    AttemptResponse,
    ConsentActionResponse,
    ConsentInviteRequest,
    ConsentInviteResponse,
    ConsentRevokeRequest,
    ConsentStatusResponse,
    ConsentTokenRequest,
)
from skolapp.schemas.retention import (
    E2ECleanupRequest,
    E2ECleanupResponse,
    OrgRetentionResponse,
    OrgRetentionUpdateRequest,
    RetentionStatsResponse,
    SweepRequest,
    SweepResponse,
)

__all__ = [
    # Consents
    "ConsentInviteRequest",
    "ConsentInviteResponse",
    "ConsentTokenRequest",
    "ConsentRevokeRequest",
    "ConsentActionResponse",
    "ConsentStatusResponse",
    # Attempts
    "AttemptCreateRequest",
    "AttemptResponse",
    "AnswerRequest",
    "AnswerResponse",
    # Retention
    "OrgRetentionResponse",
    "OrgRetentionUpdateRequest",
    "SweepRequest",
    "SweepResponse",
    "RetentionStatsResponse",
    "E2ECleanupRequest",
    "E2ECleanupResponse",
]
