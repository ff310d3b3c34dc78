"""
Enrollments Service Layer

Free self-enrollment. Paid enrollments are created by the payments module
when an order completes.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.modules.courses import repository as course_repository
from innoaccess.modules.enrollments import repository
from innoaccess.modules.enrollments.models import Enrollment, EnrollmentPaymentStatus

logger = logging.getLogger(__name__)


class EnrollmentServiceError(Exception):
    """Base exception for enrollment service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class CourseNotFoundError(EnrollmentServiceError):
    """Raised when the course does not exist or is not published."""

    def __init__(self, course_id: UUID):
        super().__init__(
            message=f"Course {course_id} not found",
            error_code="COURSE_NOT_FOUND",
            status_code=404,
        )


class PaymentRequiredError(EnrollmentServiceError):
    """Raised when self-enrollment is attempted on a paid course."""

    def __init__(self):
        super().__init__(
            message="This course requires payment. Start a checkout instead.",
            error_code="PAYMENT_REQUIRED",
            status_code=402,
        )


async def enroll_free(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> tuple[Enrollment, bool]:
    """
    Enroll a user in a published free course.

    Enrolling twice returns the existing enrollment; the course counter
    only moves for a new one.

    Returns:
        Tuple of (enrollment, created)

    Raises:
        CourseNotFoundError: Course missing or unpublished
        PaymentRequiredError: Course is not free
    """
    course = await course_repository.get_by_id(db, course_id)
    if course is None or not course.is_published:
        raise CourseNotFoundError(course_id)

    if not course.is_free:
        raise PaymentRequiredError()

    enrollment, created = await repository.create_enrollment_if_absent(
        db,
        user_id=user_id,
        course_id=course_id,
        payment_status=EnrollmentPaymentStatus.FREE,
    )
    if created:
        await course_repository.increment_enrollment_count(db, course_id)

    await db.commit()

    if created:
        logger.info(f"User {user_id} enrolled in free course {course_id}")

    return enrollment, created
