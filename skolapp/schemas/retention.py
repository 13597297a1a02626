# skolapp/schemas/retention.py
"""
Schemas for retention administration endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# -----------------------------------------------------------------------------
# Organization settings
# -----------------------------------------------------------------------------


class OrgRetentionResponse(BaseModel):
    """Effective retention settings for one organization."""

    org_id: str
    org_name: str | None = None
    retention_korttid_days: int
    consent_valid_months: int
    require_guardian_consent: bool
    is_default: bool


class OrgRetentionUpdateRequest(BaseModel):
    """Request to change an organization's retention settings."""

    retention_korttid_days: int | None = Field(None, ge=1, le=365, description="Short-term retention window")
    consent_valid_months: int | None = Field(None, ge=1, le=60, description="Guardian consent validity")
    require_guardian_consent: bool | None = Field(None, description="Require consent for long-term data")


# -----------------------------------------------------------------------------
# Sweeps
# -----------------------------------------------------------------------------


class SweepRequest(BaseModel):
    """Request to trigger a retention sweep."""

    dry_run: bool = Field(False, description="Preview only, don't change anything")
    confirm: bool = Field(False, description="Required confirmation for non-dry-run")


class SweepResponse(BaseModel):
    """Retention sweep result."""

    success: bool
    dry_run: bool
    started_at: datetime | None
    finished_at: datetime | None
    consents_expired: int
    invites_expired: int
    short_attempts_deleted: int
    long_attempts_deleted: int
    short_attempts_by_org: dict[str, int]
    errors: list[str]
    stats: dict[str, int]


class RetentionStatsResponse(BaseModel):
    """Consent and attempt counts."""

    total_consents: int
    active_consents: int
    short_term_attempts: int
    long_term_attempts: int


class E2ECleanupRequest(BaseModel):
    """Request to trigger an E2E test-data cleanup."""

    max_age_hours: int = Field(24, ge=1, le=24 * 30, description="Delete test data older than this")
    dry_run: bool = Field(False, description="Preview only, don't delete")
    confirm: bool = Field(False, description="Required confirmation for non-dry-run")


class E2ECleanupResponse(BaseModel):
    """E2E cleanup result."""

    success: bool
    dry_run: bool
    cutoff: datetime
    users: list[dict]
    deleted: dict[str, int]
    errors: list[str]
    skipped_auth_users: int
