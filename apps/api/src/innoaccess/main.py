"""
InnoAccess API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database and Redis connections
- Optional in-process workshop reminder scheduler
- CORS middleware
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from innoaccess.api import api_router
from innoaccess.core.config import settings
from innoaccess.core.database import close_db, init_db
from innoaccess.core.redis import close_redis, init_redis
from innoaccess.core.scheduler import (
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from innoaccess.modules.live_sessions import register_live_session_jobs

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection
    - Database connection
    - Background job scheduler (only when reminders run in process)
    """
    # Startup
    logger.info(f"Starting InnoAccess API in {settings.python_env} mode...")

    # Initialize Redis
    try:
        await init_redis()
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        if settings.is_production:
            raise

    # Initialize Database
    try:
        await init_db()
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production:
            raise

    # Register jobs so they can be listed and triggered from /debug/jobs;
    # the scheduler only runs them when reminders run in process
    register_live_session_jobs()

    # Initialize Background Job Scheduler
    if settings.workshop_reminders_in_process:
        try:
            await start_scheduler()
            logger.info("Background scheduler started")
        except Exception as e:
            logger.error(f"Background scheduler failed to start: {e}")
            if settings.is_production:
                raise
    else:
        logger.info("Workshop reminders are triggered externally via /api/v1/cron")

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down InnoAccess API...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()

    await close_redis()
    await close_db()
    logger.info("Cleanup complete")


app = FastAPI(
    title="InnoAccess API",
    description="Courses, live workshops and payments for the InnoAccess platform",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


# ============================================
# Background Job Debug Endpoints
# ============================================
# Manual triggering of background jobs for testing. Only mounted in
# development; in production jobs run on schedule or via the cron endpoint.

debug_router = APIRouter(prefix="/debug/jobs", tags=["Debug"])


@debug_router.get("")
async def list_jobs():
    """List all registered background jobs with next run time and pause status."""
    return {"jobs": list_registered_jobs()}


@debug_router.post("/{job_id}/trigger")
async def trigger_job(job_id: str):
    """
    Run a background job immediately, bypassing the schedule.

    Args:
        job_id: The ID of the job to trigger. Available jobs:
            - live_sessions_send_workshop_reminders

    Raises:
        HTTPException 400: If job_id is not found.
    """
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@debug_router.post("/{job_id}/pause")
async def pause_job_endpoint(job_id: str):
    """Pause a scheduled background job. It stays registered."""
    return {"job_id": job_id, "paused": pause_job(job_id)}


@debug_router.post("/{job_id}/resume")
async def resume_job_endpoint(job_id: str):
    """Resume a paused background job."""
    return {"job_id": job_id, "resumed": resume_job(job_id)}


if settings.is_development:
    app.include_router(debug_router)
