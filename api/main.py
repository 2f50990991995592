"""
Leadership Assessment API - FastAPI Application

Main entry point for the API server.
Run with: uvicorn api.main:app --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config.settings import settings
from api.config.database import init_db
from api.endpoints import api_router
from api.middleware.auth import AuthMiddleware
from api.middleware.error_handler import setup_exception_handlers
from api.middleware.logging import LoggingMiddleware, configure_logging

# Configure structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(
        "Starting Leadership Assessment API",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
    )

    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY not set; questions will use static templates")

    # Initialize database tables (in dev mode)
    if settings.DEBUG:
        logger.info("Initializing database tables (DEBUG mode)")
        try:
            init_db()
        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))

    yield

    logger.info("Shutting down Leadership Assessment API")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Adaptive five-question leadership assessment",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

setup_exception_handlers(app)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AuthMiddleware)

# Logging (added last, so it wraps auth and sees every response)
app.add_middleware(LoggingMiddleware)

app.include_router(api_router, prefix="/api/v1")


# Root health endpoint (for ALB)
@app.get("/health")
async def root_health():
    """Simple health check for load balancer."""
    return {"status": "ok", "version": settings.APP_VERSION}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs" if settings.DEBUG else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
