"""
Database diagnostics for operators.

Only row counts and connection facts are returned; no row contents, URLs
or credentials.
"""
import logging
import time
from typing import Any, Dict

from sqlalchemy import func, inspect, select

from academy.core.config import settings
from academy.core.database import get_db_session, get_engine, metadata
from academy.core.errors import NotFoundError
from academy.core.logging import latency_bucket_ms

logger = logging.getLogger(__name__)


def debug_routes_enabled() -> bool:
    return bool(settings.DEBUG_ROUTES_ENABLED) and settings.ENV != "production"


def db_diagnostics() -> Dict[str, Any]:
    """Connection latency plus per-table row counts; 404 when debug routes are off."""
    if not debug_routes_enabled():
        raise NotFoundError("Not found")

    engine = get_engine()
    start = time.perf_counter()
    with engine.connect() as conn:
        conn.execute(select(1))
    latency_ms = (time.perf_counter() - start) * 1000

    inspector = inspect(engine)
    counts: Dict[str, Any] = {}
    missing = []
    with get_db_session() as session:
        for name, table in sorted(metadata.tables.items()):
            if not inspector.has_table(name):
                missing.append(name)
                continue
            counts[name] = session.execute(select(func.count()).select_from(table)).scalar_one()

    logger.info("debug.db", extra={"latency_bucket": latency_bucket_ms(latency_ms)})
    return {
        "connected": True,
        "dialect": engine.dialect.name,
        "latency_bucket": latency_bucket_ms(latency_ms),
        "tables": counts,
        "missing_tables": missing,
    }
