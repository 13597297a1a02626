# skolapp/services/retention/policy_service.py
"""
Organization retention policy service.

Reads and updates the per-organization retention configuration and applies
defaults when an organization has never saved its settings.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from skolapp.models import Organization, OrgSettings, utcnow

logger = logging.getLogger(__name__)


# Defaults applied when org_settings is missing or a field is unset
DEFAULT_RETENTION_KORTTID_DAYS = 30
DEFAULT_CONSENT_VALID_MONTHS = 12
DEFAULT_REQUIRE_GUARDIAN_CONSENT = False


@dataclass(frozen=True)
class RetentionSettings:
    """Effective retention configuration for one organization."""

    org_id: Optional[uuid.UUID]
    retention_korttid_days: int = DEFAULT_RETENTION_KORTTID_DAYS
    consent_valid_months: int = DEFAULT_CONSENT_VALID_MONTHS
    require_guardian_consent: bool = DEFAULT_REQUIRE_GUARDIAN_CONSENT
    is_default: bool = True


def settings_from_row(org_id: Optional[uuid.UUID], row: Optional[OrgSettings]) -> RetentionSettings:
    """
    Resolve effective settings from a (possibly missing) org_settings row.

    Zero and null values fall back to the defaults, so a half-filled row
    never produces a zero-day retention window.
    """
    if row is None:
        return RetentionSettings(org_id=org_id)

    return RetentionSettings(
        org_id=org_id,
        retention_korttid_days=row.retention_korttid_days or DEFAULT_RETENTION_KORTTID_DAYS,
        consent_valid_months=row.consent_valid_months or DEFAULT_CONSENT_VALID_MONTHS,
        require_guardian_consent=bool(row.require_guardian_consent),
        is_default=False,
    )


def get_org_settings(db: Session, org_id: uuid.UUID) -> Optional[OrgSettings]:
    """Get the stored settings row for an organization, if any."""
    return db.query(OrgSettings).filter(OrgSettings.org_id == org_id).first()


def resolve_retention_settings(db: Session, org_id: uuid.UUID) -> RetentionSettings:
    """Get the effective retention settings for an organization."""
    return settings_from_row(org_id, get_org_settings(db, org_id))


def update_org_settings(
    db: Session,
    org_id: uuid.UUID,
    retention_korttid_days: Optional[int] = None,
    consent_valid_months: Optional[int] = None,
    require_guardian_consent: Optional[bool] = None,
) -> OrgSettings:
    """
    Create or update an organization's retention settings.

    Only updates fields that are explicitly provided (not None).
    Raises ValueError for an unknown organization or a non-positive window.
    """
    org = db.query(Organization).filter(Organization.id == org_id).first()
    if not org:
        raise ValueError(f"Organization '{org_id}' not found")

    if retention_korttid_days is not None and retention_korttid_days < 1:
        raise ValueError("retention_korttid_days must be at least 1")
    if consent_valid_months is not None and consent_valid_months < 1:
        raise ValueError("consent_valid_months must be at least 1")

    row = get_org_settings(db, org_id)
    if row is None:
        row = OrgSettings(
            org_id=org_id,
            retention_korttid_days=DEFAULT_RETENTION_KORTTID_DAYS,
            consent_valid_months=DEFAULT_CONSENT_VALID_MONTHS,
            require_guardian_consent=DEFAULT_REQUIRE_GUARDIAN_CONSENT,
        )

    if retention_korttid_days is not None:
        row.retention_korttid_days = retention_korttid_days
    if consent_valid_months is not None:
        row.consent_valid_months = consent_valid_months
    if require_guardian_consent is not None:
        row.require_guardian_consent = require_guardian_consent
    row.updated_at = utcnow()

    db.add(row)
    db.commit()
    db.refresh(row)

    logger.info(
        f"Updated retention settings for org {org_id}: "
        f"korttid={row.retention_korttid_days}d, consent={row.consent_valid_months}mo, "
        f"require_consent={row.require_guardian_consent}",
        extra={"org_id": str(org_id)},
    )
    return row


def list_org_retention(db: Session) -> list[tuple[Organization, RetentionSettings]]:
    """List every organization with its effective retention settings."""
    rows = (
        db.query(Organization, OrgSettings)
        .outerjoin(OrgSettings, OrgSettings.org_id == Organization.id)
        .order_by(Organization.name)
        .all()
    )
    return [(org, settings_from_row(org.id, row)) for org, row in rows]


def get_retention_config(db: Session, org_id: uuid.UUID) -> dict:
    """
    Get an organization's retention configuration as a dict.

    Useful for displaying in status endpoints and CLI.
    """
    settings = resolve_retention_settings(db, org_id)
    return {
        "org_id": str(org_id),
        "retention_korttid_days": settings.retention_korttid_days,
        "consent_valid_months": settings.consent_valid_months,
        "require_guardian_consent": settings.require_guardian_consent,
        "is_default": settings.is_default,
    }
