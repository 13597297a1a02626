# skolapp/routers/admin_retention.py
"""
Admin endpoints for consent retention management.

GET  /v1/admin/retention/orgs                    - Every org with effective settings
GET  /v1/admin/retention/orgs/{org_id}/settings  - One org's settings
PUT  /v1/admin/retention/orgs/{org_id}/settings  - Update one org's settings
GET  /v1/admin/retention/stats                   - Consent and attempt counts
POST /v1/admin/retention/sweep                   - Trigger a retention sweep
POST /v1/admin/retention/e2e-cleanup             - Trigger E2E test-data cleanup
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from skolapp.auth import require_admin_key
from skolapp.database import get_db
from skolapp.schemas.retention import (
    E2ECleanupRequest,
    E2ECleanupResponse,
    OrgRetentionResponse,
    OrgRetentionUpdateRequest,
    RetentionStatsResponse,
    SweepRequest,
    SweepResponse,
)
from skolapp.services.e2e_cleanup_service import cleanup_e2e_test_data
from skolapp.services.retention import (
    collect_retention_stats,
    get_retention_config,
    list_org_retention,
    run_retention_sweep,
    update_org_settings,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/retention", tags=["admin-retention"])


@router.get("/orgs")
def list_org_settings(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> list[OrgRetentionResponse]:
    """
    List all organizations with their effective retention settings.
    """
    return [
        OrgRetentionResponse(
            org_id=str(org.id),
            org_name=org.name,
            retention_korttid_days=settings.retention_korttid_days,
            consent_valid_months=settings.consent_valid_months,
            require_guardian_consent=settings.require_guardian_consent,
            is_default=settings.is_default,
        )
        for org, settings in list_org_retention(db)
    ]


@router.get("/orgs/{org_id}/settings", response_model=OrgRetentionResponse)
def get_org_settings(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> OrgRetentionResponse:
    """
    Get one organization's effective retention settings (defaults when unset).
    """
    return OrgRetentionResponse(**get_retention_config(db, org_id))


@router.put("/orgs/{org_id}/settings", response_model=OrgRetentionResponse)
def put_org_settings(
    org_id: uuid.UUID,
    request: OrgRetentionUpdateRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> OrgRetentionResponse:
    """
    Update an organization's retention settings. Omitted fields are unchanged.
    """
    try:
        update_org_settings(
            db,
            org_id,
            retention_korttid_days=request.retention_korttid_days,
            consent_valid_months=request.consent_valid_months,
            require_guardian_consent=request.require_guardian_consent,
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))

    return OrgRetentionResponse(**get_retention_config(db, org_id))


@router.get("/stats", response_model=RetentionStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> RetentionStatsResponse:
    """
    Get consent and attempt counts by retention state.
    """
    return RetentionStatsResponse(**collect_retention_stats(db))


@router.post("/sweep", response_model=SweepResponse)
def trigger_sweep(
    request: SweepRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> SweepResponse:
    """
    Trigger a retention sweep.

    **WARNING**: This permanently deletes student data.

    Requires `confirm: true` for non-dry-run operations. Item-level
    failures are reported in `errors`; the sweep still completes.
    """
    if not request.dry_run and not request.confirm:
        raise HTTPException(
            status_code=400,
            detail="Sweep requires 'confirm: true' for non-dry-run operations",
        )

    result = run_retention_sweep(db, dry_run=request.dry_run)

    return SweepResponse(
        success=result.success,
        dry_run=result.dry_run,
        started_at=result.started_at,
        finished_at=result.finished_at,
        consents_expired=result.consents_expired,
        invites_expired=result.invites_expired,
        short_attempts_deleted=result.short_attempts_deleted,
        long_attempts_deleted=result.long_attempts_deleted,
        short_attempts_by_org=result.short_attempts_by_org,
        errors=result.errors,
        stats=result.stats,
    )


@router.post("/e2e-cleanup", response_model=E2ECleanupResponse)
def trigger_e2e_cleanup(
    request: E2ECleanupRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> E2ECleanupResponse:
    """
    Trigger removal of E2E test account data.

    Requires `confirm: true` for non-dry-run operations.
    """
    if not request.dry_run and not request.confirm:
        raise HTTPException(
            status_code=400,
            detail="Cleanup requires 'confirm: true' for non-dry-run operations",
        )

    result = cleanup_e2e_test_data(db, max_age_hours=request.max_age_hours, dry_run=request.dry_run)

    return E2ECleanupResponse(
        success=result.success,
        dry_run=result.dry_run,
        cutoff=result.cutoff,
        users=result.users,
        deleted=result.deleted,
        errors=result.errors,
        skipped_auth_users=result.skipped_auth_users,
    )
