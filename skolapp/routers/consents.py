# skolapp/routers/consents.py
"""
Guardian consent endpoints.

POST /v1/consents/invite        - Send a consent request to a guardian (admin)
POST /v1/consents/visit         - Guardian opened the consent link
POST /v1/consents/accept        - Guardian grants consent via token
POST /v1/consents/decline       - Guardian declines consent via token
POST /v1/consents/revoke        - Revoke consent (admin override)
GET  /v1/consents/{student_id}  - Consent status across organizations (admin)

User-facing messages are Swedish; the guardian flows are public and
authorized by the invite token alone.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from skolapp.auth import require_admin_key
from skolapp.config import get_settings
from skolapp.database import get_db
from skolapp.schemas.consents import (
    ConsentActionResponse,
    ConsentInviteRequest,
    ConsentInviteResponse,
    ConsentRevokeRequest,
    ConsentStatusResponse,
    ConsentTokenRequest,
)
from skolapp.services.retention import (
    ConsentAlreadyRevokedError,
    ConsentError,
    ConsentNotFoundError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    accept_invite,
    decline_invite,
    get_consent_status,
    issue_invite,
    revoke_consent,
)
from skolapp.services.retention.consent_service import mark_invite_visited

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/consents", tags=["consents"])


def _raise_for_consent_error(e: ConsentError) -> None:
    """Translate consent service errors into HTTP responses."""
    if isinstance(e, ConsentNotFoundError):
        raise HTTPException(status_code=404, detail="Ogiltig eller utgången länk")
    if isinstance(e, InviteExpiredError):
        raise HTTPException(status_code=410, detail="Länken har gått ut")
    if isinstance(e, InviteAlreadyUsedError):
        raise HTTPException(status_code=410, detail="Denna länk har redan använts")
    if isinstance(e, ConsentAlreadyRevokedError):
        raise HTTPException(status_code=400, detail="Samtycket är redan återkallat")
    raise HTTPException(status_code=400, detail=str(e))


def _request_evidence(request: Request) -> dict:
    return {
        "ip_address": request.headers.get("x-forwarded-for") or (request.client.host if request.client else "unknown"),
        "user_agent": request.headers.get("user-agent", "unknown"),
    }


@router.post("/invite", response_model=ConsentInviteResponse)
def send_invite(
    body: ConsentInviteRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> ConsentInviteResponse:
    """
    Send a consent request to a guardian.

    Puts the student's consent in the organization into `pending` and
    creates a 14-day invite link.
    """
    invite = issue_invite(
        db,
        org_id=body.org_id,
        student_id=body.student_id,
        guardian_email=body.guardian_email,
        sent_by=body.sent_by,
        app_url=get_settings().APP_URL,
    )

    return ConsentInviteResponse(
        message="Samtyckesförfrågan skickad",
        invite_id=str(invite.id),
        token=invite.token,
        guardian_email=invite.guardian_email,
        expires_at=invite.expires_at,
    )


@router.post("/visit")
def visit_invite(
    body: ConsentTokenRequest,
    db: Session = Depends(get_db),
) -> dict:
    """
    Record that the guardian opened the consent page.
    """
    try:
        invite = mark_invite_visited(db, body.token)
    except ConsentError as e:
        _raise_for_consent_error(e)

    return {"success": True, "status": invite.status, "expires_at": invite.expires_at}


@router.post("/accept", response_model=ConsentActionResponse)
def accept(
    body: ConsentTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ConsentActionResponse:
    """
    Grant consent through the invite token.
    """
    try:
        consent = accept_invite(db, body.token, evidence=_request_evidence(request))
    except ConsentError as e:
        _raise_for_consent_error(e)

    return ConsentActionResponse(
        message="Samtycke godkänt",
        student_id=str(consent.student_id),
        org_id=str(consent.org_id),
        status=consent.status,
        expires_at=consent.expires_at,
    )


@router.post("/decline", response_model=ConsentActionResponse)
def decline(
    body: ConsentTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ConsentActionResponse:
    """
    Decline consent through the invite token.
    """
    try:
        consent = decline_invite(db, body.token, evidence=_request_evidence(request))
    except ConsentError as e:
        _raise_for_consent_error(e)

    return ConsentActionResponse(
        message="Samtycke avböjt",
        student_id=str(consent.student_id),
        org_id=str(consent.org_id),
        status=consent.status,
    )


@router.post("/revoke", response_model=ConsentActionResponse)
def revoke(
    body: ConsentRevokeRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> ConsentActionResponse:
    """
    Revoke a student's consent in an organization.

    Long-term data is removed by the next retention sweep.
    """
    try:
        consent = revoke_consent(db, body.org_id, body.student_id, revoked_by=body.revoked_by)
    except ConsentNotFoundError:
        raise HTTPException(status_code=404, detail="Ingen samtyckespost hittades")
    except ConsentError as e:
        _raise_for_consent_error(e)

    return ConsentActionResponse(
        message="Samtycke återkallat",
        student_id=str(consent.student_id),
        org_id=str(consent.org_id),
        status=consent.status,
    )


@router.get("/{student_id}", response_model=ConsentStatusResponse)
def consent_status(
    student_id: uuid.UUID,
    org_id: list[uuid.UUID] = Query(..., description="Organizations the caller may see"),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> ConsentStatusResponse:
    """
    Get a student's consent status in the given organizations.
    """
    return ConsentStatusResponse(**get_consent_status(db, student_id, org_id))
