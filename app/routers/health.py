"""
Health check endpoint.

- GET /api/health — process alive, version, uptime, and a trivial DB query
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.async_utils import run_sync
from app.core.database import get_engine
from app.core.structured_logging import APP_VERSION, SERVICE_NAME, get_uptime_s
from app.models.responses import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_database() -> str:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except SQLAlchemyError as exc:
        logger.warning("health_database_check_failed", extra={"error.message": str(exc)})
        return "down"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Cheap health check."""
    database = await run_sync(_check_database, timeout=2)
    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": APP_VERSION,
        "service": SERVICE_NAME,
        "database": database,
        "uptime_s": round(get_uptime_s(), 1),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
