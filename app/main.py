"""
Quota Engine API - usage metering and plan enforcement

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import api_router
from app.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown.
    """
    logger.info(f"{settings.app_name} starting up...")

    # Create database tables
    from app.database import engine, Base
    from app.models import Tenant, UsageCounter, NotificationRecord  # noqa: F401
    Base.metadata.create_all(bind=engine)

    # Start reset scheduler
    if settings.enable_scheduler:
        from app.services.scheduler import start_scheduler
        start_scheduler()

    yield

    logger.info(f"{settings.app_name} shutting down...")
    if settings.enable_scheduler:
        from app.services.scheduler import stop_scheduler
        stop_scheduler()


# Create FastAPI application
app = FastAPI(
    title="Quota Engine API",
    description="Per-tenant usage metering, tiered limits and cutoff enforcement",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(",") if settings.cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc) if settings.debug else "Internal server error",
            "type": type(exc).__name__,
        },
    )


# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/api/v1/scheduler")
async def scheduler_status():
    """Reset scheduler status and next runs."""
    from app.services.scheduler import get_scheduler_status
    return get_scheduler_status()


# Health check at root level
@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
    }
