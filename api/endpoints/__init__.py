"""API endpoints for the Leadership Assessment service."""

from fastapi import APIRouter

from .health import router as health_router
from .public_assessments import router as public_assessments_router
from .assessments import router as assessments_router
from .analytics import router as analytics_router

# Create main API router
api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["Health"])
api_router.include_router(
    public_assessments_router, prefix="/public/assessments", tags=["Public Assessments"]
)
api_router.include_router(assessments_router, prefix="/assessments", tags=["Assessments"])
api_router.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])

__all__ = ["api_router"]
