# skolapp/auth.py
"""Admin authentication for retention and consent management endpoints."""

import logging
import secrets

from fastapi import Depends, Header, HTTPException

from skolapp.config import Settings, get_settings

logger = logging.getLogger(__name__)


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Check the X-API-Key header against ADMIN_API_KEY.

    Fails closed: without a configured key every admin request is refused.
    """
    if not settings.ADMIN_API_KEY:
        logger.error("ADMIN_API_KEY is not configured; refusing admin request")
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: admin authentication not configured",
        )

    if not x_api_key or not secrets.compare_digest(x_api_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected admin request with missing or invalid API key")
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
        )
