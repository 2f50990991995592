"""Health check endpoints for monitoring."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.config.database import get_db
from api.models import Job

logger = structlog.get_logger()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    database: str
    ai: str


class DetailedHealthResponse(HealthResponse):
    """Detailed health check with component info."""
    components: dict


def check_database(db: Session) -> tuple[str, str | None]:
    """Check database connectivity."""
    try:
        result = db.execute(text("SELECT 1"))
        result.fetchone()
        return "connected", None
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return "disconnected", str(e)


def check_ai() -> str:
    """Adaptation falls back to static questions when no key is set."""
    return "configured" if settings.ANTHROPIC_API_KEY else "not_configured"


def queue_counts(db: Session) -> dict[str, int]:
    """Job counts per status."""
    rows = db.query(Job.status, func.count(Job.id)).group_by(Job.status).all()
    return {status: count for status, count in rows}


@router.get("", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse)
async def health_check(
    db: Session = Depends(get_db),
) -> HealthResponse:
    """Basic health check endpoint."""
    db_status, _ = check_database(db)

    return HealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=db_status,
        ai=check_ai(),
    )


@router.get("/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    db: Session = Depends(get_db),
) -> DetailedHealthResponse:
    """
    Detailed health check with component diagnostics.

    Includes error messages for failed components and queue depth.
    """
    db_status, db_error = check_database(db)

    queue: dict = {}
    if db_status == "connected":
        try:
            queue = queue_counts(db)
        except Exception as e:
            logger.error("Queue health check failed", error=str(e))
            queue = {"error": str(e)}

    components = {
        "database": {
            "status": db_status,
            "error": db_error,
            "url": settings.DATABASE_URL.split("@")[-1] if "@" in settings.DATABASE_URL else "configured",
        },
        "ai": {
            "status": check_ai(),
            "model": settings.CLAUDE_MODEL,
        },
        "queue": queue,
    }

    return DetailedHealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=db_status,
        ai=check_ai(),
        components=components,
    )


@router.get("/ready")
async def readiness_check(
    db: Session = Depends(get_db),
) -> dict:
    """Readiness probe: 200 once the database is reachable."""
    db_status, _ = check_database(db)

    if db_status != "connected":
        return {"ready": False, "reason": "Database not connected"}

    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    return {"alive": True}
