"""
Live Sessions Router

Endpoints:
- GET /cron/workshop-reminders - Run one reminder pass (external cron)
- GET /live-sessions/upcoming - Caller's sessions in the next 24 hours
- GET /live-sessions/{course_id} - Current state of one session
- PATCH /live-sessions/{course_id}/schedule - Reschedule a session

Security:
- The cron trigger requires Authorization: Bearer <CRON_SECRET> and is
  rate limited per client IP before the secret is checked
- Participant endpoints require a JWT; rescheduling requires the
  schedule_live_session capability and course ownership (or admin)
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.auth import (
    Capability,
    CurrentUser,
    require_capability,
    verify_cron_secret,
)
from innoaccess.core.database import get_db
from innoaccess.core.rate_limit import RateLimitExceeded, check_rate_limit, client_ip
from innoaccess.modules.live_sessions import jobs, service
from innoaccess.modules.live_sessions.schemas import (
    LiveSessionResponse,
    ReminderRunResponse,
    RescheduleRequest,
    UpcomingSessionsResponse,
)
from innoaccess.modules.live_sessions.service import LiveSessionServiceError

logger = logging.getLogger(__name__)

router = APIRouter()
cron_router = APIRouter()

RATE_LIMIT_CRON = (10, 60)  # 10 calls per minute per IP


async def _check_cron_rate_limit(request: Request) -> None:
    """
    Rate limit cron trigger calls per client IP.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    limit, window_seconds = RATE_LIMIT_CRON
    key = f"cron:workshop_reminders:{client_ip(request)}"
    result = await check_rate_limit(key, limit, window_seconds)

    if not result.allowed:
        logger.warning(f"Rate limit exceeded for cron trigger from {client_ip(request)}")
        raise RateLimitExceeded(limit, window_seconds, result.retry_after_seconds)


def _handle_service_error(e: LiveSessionServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


@cron_router.get(
    "/workshop-reminders",
    response_model=ReminderRunResponse,
    response_model_exclude_none=True,
    summary="Send Workshop Reminders",
    dependencies=[Depends(_check_cron_rate_limit), Depends(verify_cron_secret)],
    responses={
        401: {"description": "Missing or wrong cron secret"},
        429: {"description": "Too many calls"},
        500: {
            "description": "Run failed",
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "error": {"message": "Failed to process reminders", "code": "CRON_ERROR"},
                    }
                }
            },
        },
    },
)
async def trigger_workshop_reminders() -> Any:
    """
    Run one reminder pass.

    Called once per minute by the external scheduler. Safe to call more
    often or concurrently: each session is reminded at most once.
    """
    try:
        result = await jobs.send_workshop_reminders()
    except Exception as e:
        logger.exception(f"Workshop reminder run failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": {"message": "Failed to process reminders", "code": "CRON_ERROR"},
            },
        )

    return ReminderRunResponse.model_validate(result)


@router.get(
    "/upcoming",
    response_model=UpcomingSessionsResponse,
    summary="My Upcoming Live Sessions",
)
async def list_upcoming_sessions(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_capability(Capability.VIEW_LIVE_SESSIONS)),
) -> UpcomingSessionsResponse:
    """Sessions the caller is enrolled in that start within 24 hours and have not ended."""
    views = await service.get_upcoming_sessions(db, user.id)
    return UpcomingSessionsResponse(
        items=[LiveSessionResponse.model_validate(view) for view in views]
    )


@router.get(
    "/{course_id}",
    response_model=LiveSessionResponse,
    summary="Live Session Status",
    responses={
        403: {"description": "Not enrolled in the course"},
        404: {"description": "Course not found or not live"},
    },
)
async def get_session_status(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_capability(Capability.VIEW_LIVE_SESSIONS)),
) -> LiveSessionResponse:
    """
    Current state of a live session.

    The join link is included while the session is starting soon or live,
    the recording link once it has ended and a recording is available.
    """
    try:
        view = await service.get_session_status(db, user, course_id)
    except LiveSessionServiceError as e:
        raise _handle_service_error(e) from e

    return LiveSessionResponse.model_validate(view)


@router.patch(
    "/{course_id}/schedule",
    response_model=LiveSessionResponse,
    summary="Reschedule Live Session",
    responses={
        403: {"description": "Not the course's trainer"},
        404: {"description": "Course not found or not live"},
    },
)
async def reschedule_session(
    course_id: UUID,
    data: RescheduleRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_capability(Capability.SCHEDULE_LIVE_SESSION)),
) -> LiveSessionResponse:
    """
    Change start time, duration or meeting link.

    Moving the start time makes the session eligible for a new reminder.
    """
    try:
        view = await service.reschedule_session(
            db,
            user,
            course_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            meeting_link=data.meeting_link,
        )
    except LiveSessionServiceError as e:
        logger.warning(f"Reschedule of {course_id} refused: {e.error_code}")
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Unexpected error rescheduling session {course_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e

    return LiveSessionResponse.model_validate(view)
