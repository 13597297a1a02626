# skolapp/main.py

from fastapi import FastAPI

from skolapp.config import get_settings
from skolapp.logging_config import configure_logging
from skolapp.routers import admin_retention_router, attempts_router, consents_router

settings = get_settings()
configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Skolapp Consent & Retention API")

app.include_router(consents_router)
app.include_router(attempts_router)
app.include_router(admin_retention_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "skolapp-retention", "environment": settings.ENVIRONMENT}
