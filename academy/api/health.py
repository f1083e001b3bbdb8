"""
Liveness and readiness endpoints. Readiness reports which integrations are switched on,
never their credentials.
"""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from academy.core.config import settings
from academy.core.database import get_engine
from academy.features.billing.service import billing_enabled
from academy.features.email.sender import email_enabled

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# The learning loop cannot serve a request without these
REQUIRED_TABLES = ("users", "courses", "modules", "lessons", "enrollments", "subscriptions", "notifications")


def _integrations() -> dict:
    return {
        "billing": billing_enabled(),
        "email": email_enabled(),
        "storage": bool(settings.BLOB_BUCKET),
    }


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        missing = [name for name in REQUIRED_TABLES if not inspect(engine).has_table(name)]
    except Exception:
        logger.error("readyz.database_unreachable", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"readyz.{detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    return {"status": "ok", "integrations": _integrations()}
