"""
Admissions API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Database and Redis connections
- Notification outbox scheduler
- CORS middleware
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from admissions.api import api_router
from admissions.core.config import settings
from admissions.core.database import async_session_maker, close_db, init_db
from admissions.core.logging import configure_logging
from admissions.core.redis import close_redis, get_redis, init_redis, is_redis_available
from admissions.core.scheduler import (
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from admissions.modules.applications import register_application_jobs

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Redis is optional outside production: referral lookups fall back to
    the database when it is down.
    """
    logger.info(f"Starting Admissions API in {settings.python_env} mode...")

    try:
        await init_redis()
        logger.info("[OK] Redis connected")
    except Exception as e:
        logger.error(f"[FAIL] Redis connection failed: {e}")
        if settings.is_production:
            raise

    try:
        await init_db()
        logger.info("[OK] Database connected")
    except Exception as e:
        logger.error(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        register_application_jobs()
        await start_scheduler()
        logger.info("[OK] Background scheduler started")
    except Exception as e:
        logger.error(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield

    logger.info("Shutting down Admissions API...")

    # Wait for a running outbox batch before closing connections
    await stop_scheduler()
    await close_redis()
    await close_db()
    logger.info("[OK] Cleanup complete")


app = FastAPI(
    title="Admissions API",
    description="Student admission applications and review workflow",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _development_only() -> None:
    if not settings.is_development:
        raise HTTPException(status_code=404, detail="Not Found")


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": "Welcome to the Admissions API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Ready once the database answers. Redis is reported but optional."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable") from e

    return {
        "status": "ready",
        "redis": "connected" if is_redis_available() else "unavailable",
    }


@app.get("/debug/db", tags=["Debug"], dependencies=[Depends(_development_only)])
async def debug_db():
    """Test database connection."""
    try:
        async with async_session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            return {"database": "connected", "result": result.scalar()}
    except Exception as e:
        return {"database": "error", "message": str(e)}


@app.get("/debug/redis", tags=["Debug"], dependencies=[Depends(_development_only)])
async def debug_redis():
    """Test Redis connection."""
    client = await get_redis()
    if client is None:
        return {"redis": "not initialized"}
    try:
        await client.ping()
        return {"redis": "connected"}
    except Exception as e:
        return {"redis": "error", "message": str(e)}


# ============================================
# Background Job Debug Endpoints
# ============================================
# Manual control over the outbox job. In production it runs on its interval.


@app.get("/debug/jobs", tags=["Debug"], dependencies=[Depends(_development_only)])
async def list_jobs():
    """List registered background jobs with next run time and pause status."""
    return {"jobs": list_registered_jobs()}


@app.post(
    "/debug/jobs/{job_id}/trigger", tags=["Debug"], dependencies=[Depends(_development_only)]
)
async def trigger_job(job_id: str):
    """
    Run a background job now, bypassing its schedule.

    Args:
        job_id: The ID of the job to trigger. Available jobs:
            - applications_deliver_notifications

    Raises:
        HTTPException 400: If job_id is not found.
    """
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@app.post(
    "/debug/jobs/{job_id}/pause", tags=["Debug"], dependencies=[Depends(_development_only)]
)
async def pause_job_endpoint(job_id: str):
    return {"job_id": job_id, "paused": pause_job(job_id)}


@app.post(
    "/debug/jobs/{job_id}/resume", tags=["Debug"], dependencies=[Depends(_development_only)]
)
async def resume_job_endpoint(job_id: str):
    return {"job_id": job_id, "resumed": resume_job(job_id)}
