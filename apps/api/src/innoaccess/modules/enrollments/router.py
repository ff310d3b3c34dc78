"""
Enrollments Router

Endpoints:
- POST /courses/{course_id}/enroll - Enroll in a free course
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.auth import Capability, CurrentUser, require_capability
from innoaccess.core.database import get_db
from innoaccess.modules.enrollments import service
from innoaccess.modules.enrollments.schemas import EnrollmentResponse
from innoaccess.modules.enrollments.service import EnrollmentServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentResponse,
    summary="Enroll in a Free Course",
    responses={
        200: {"description": "Already enrolled"},
        201: {"description": "Enrollment created"},
        402: {"description": "Course requires payment"},
        404: {"description": "Course not found or not published"},
    },
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    course_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_capability(Capability.ENROLL_IN_COURSE)),
) -> EnrollmentResponse:
    try:
        enrollment, created = await service.enroll_free(db, user.id, course_id)
    except EnrollmentServiceError as e:
        logger.warning(f"Enrollment refused for user {user.id} in {course_id}: {e.error_code}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except Exception as e:
        logger.exception(f"Unexpected error enrolling user {user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e

    if not created:
        response.status_code = status.HTTP_200_OK

    result = EnrollmentResponse.model_validate(enrollment)
    result.created = created
    return result
