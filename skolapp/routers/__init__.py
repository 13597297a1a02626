# skolapp/routers/__init__.py
"""
API routers for v1 endpoints.
"""

from skolapp.routers.admin_retention import router as admin_retention_router
from skolapp.routers.attempts import router as attempts_router
from skolapp.routers.consents import router as consents_router

__all__ = [
    "admin_retention_router",
    "attempts_router",
    "consents_router",
]
