"""
Enrollments Repository

Database operations for enrollments.

Enrollment creation is race-safe: the insert runs inside a SAVEPOINT and a
unique-constraint violation on (user_id, course_id) is reported as "already
enrolled" instead of an error. Nothing here commits; callers own the
transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.modules.courses.models import Course, CourseType
from innoaccess.modules.users.models import User

from .models import Enrollment, EnrollmentPaymentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Participant:
    """An enrolled user with the contact details needed to notify them."""

    user_id: UUID
    name: str
    email: str | None


async def get_for_user_course(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> Enrollment | None:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
        )
    )
    return result.scalar_one_or_none()


async def is_enrolled(db: AsyncSession, user_id: UUID, course_id: UUID) -> bool:
    return await get_for_user_course(db, user_id, course_id) is not None


async def list_participants(db: AsyncSession, course_id: UUID) -> list[Participant]:
    """
    Get every enrolled user of a course with their name and email.

    Args:
        db: Database session
        course_id: UUID of the course

    Returns:
        Participants in enrollment order
    """
    result = await db.execute(
        select(User.id, User.name, User.email)
        .join(Enrollment, Enrollment.user_id == User.id)
        .where(Enrollment.course_id == course_id)
        .order_by(Enrollment.enrolled_at, Enrollment.id)
    )
    return [Participant(user_id=row.id, name=row.name, email=row.email) for row in result]


async def create_enrollment_if_absent(
    db: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    payment_status: EnrollmentPaymentStatus,
    order_id: UUID | None = None,
) -> tuple[Enrollment, bool]:
    """
    Insert an enrollment unless one already exists for the pair.

    The existence check is only a shortcut; the unique constraint decides.
    When a concurrent insert wins, its row is returned instead.

    Args:
        db: Database session (the caller commits)
        user_id: Enrolling user
        course_id: Course being enrolled in
        payment_status: FREE or PAID
        order_id: Completed order that paid for the enrollment

    Returns:
        Tuple of (enrollment, created) where created is False when the
        user was already enrolled

    Raises:
        IntegrityError: For constraint violations other than the
            duplicate pair (e.g. unknown user or course)
    """
    existing = await get_for_user_course(db, user_id, course_id)
    if existing is not None:
        return existing, False

    enrollment = Enrollment(
        user_id=user_id,
        course_id=course_id,
        order_id=order_id,
        payment_status=payment_status,
        progress=[],
    )

    try:
        async with db.begin_nested():
            db.add(enrollment)
    except IntegrityError:
        existing = await get_for_user_course(db, user_id, course_id)
        if existing is None:
            raise
        logger.info(f"User {user_id} already enrolled in course {course_id}")
        return existing, False

    logger.info(f"Created enrollment {enrollment.id} for user {user_id} in course {course_id}")
    return enrollment, True


async def list_live_courses_for_user(
    db: AsyncSession,
    user_id: UUID,
    starts_before: datetime,
) -> list[Course]:
    """
    Get the published live courses a user is enrolled in whose session
    starts before the given instant, soonest first.
    """
    result = await db.execute(
        select(Course)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .where(
            Enrollment.user_id == user_id,
            Course.course_type == CourseType.LIVE,
            Course.is_published.is_(True),
            Course.session_start_at.is_not(None),
            Course.session_start_at <= starts_before,
        )
        .order_by(Course.session_start_at)
    )
    return list(result.scalars().all())
