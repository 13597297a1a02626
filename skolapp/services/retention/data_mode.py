# skolapp/services/retention/data_mode.py
"""
Data mode resolution for new quiz attempts.

Decides, at the moment an attempt is created, whether its data may be kept
long-term. The decision is stored on the attempt and never revisited.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from skolapp.models import DataMode, utcnow
from skolapp.services.retention.consent_service import get_active_consent

logger = logging.getLogger(__name__)


def resolve_data_mode(
    db: Session,
    student_id: Optional[uuid.UUID],
    org_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> DataMode:
    """
    Choose short or long retention for a new attempt.

    Guests always get short. A student gets long only with a granted,
    unexpired guardian consent (in org_id, when given). Any lookup error
    yields short so attempt creation never fails on a consent check.
    """
    if student_id is None:
        return DataMode.SHORT

    try:
        consent = get_active_consent(db, student_id, org_id=org_id, now=now or utcnow())
    except Exception as e:
        logger.warning(
            f"Consent lookup failed for student {student_id}, using short retention: {e}",
            extra={"student_id": str(student_id)},
        )
        return DataMode.SHORT

    return DataMode.LONG if consent is not None else DataMode.SHORT
