"""
Courses Repository

Database operations for courses and their embedded live session.

Writes that can race (the reminder claim, the enrollment counter and the
reschedule) are single conditional UPDATE statements, never a read
followed by a write.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Course, CourseType

logger = logging.getLogger(__name__)


async def get_by_id(db: AsyncSession, course_id: UUID) -> Course | None:
    result = await db.execute(
        select(Course).where(Course.id == course_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_sessions_needing_reminder(
    db: AsyncSession,
    window_start: datetime,
    window_end: datetime,
) -> list[Course]:
    """
    Get live sessions that start inside the reminder window and have not
    been reminded yet.

    Finds courses that:
    1. Are LIVE and published
    2. Start between window_start and window_end (both inclusive)
    3. Have NOT yet been reminded (last_reminder_sent_at is NULL)

    Args:
        db: Database session
        window_start: Earliest start time (now + 10 minutes)
        window_end: Latest start time (now + 15 minutes)

    Returns:
        Courses whose session needs a reminder, soonest first
    """
    result = await db.execute(
        select(Course)
        .where(
            and_(
                Course.course_type == CourseType.LIVE,
                Course.is_published.is_(True),
                Course.session_start_at >= window_start,
                Course.session_start_at <= window_end,
                Course.last_reminder_sent_at.is_(None),
            )
        )
        .order_by(Course.session_start_at)
    )
    return list(result.scalars().all())


async def claim_reminder(
    db: AsyncSession,
    course_id: UUID,
    sent_at: datetime,
) -> bool:
    """
    Mark a session as reminded, only if nobody has done so yet.

    This is the compare-and-set that keeps overlapping reminder passes from
    both notifying the same session. It commits immediately so the claim is
    durable before any email is sent.

    Args:
        db: Database session
        course_id: UUID of the course
        sent_at: Reminder timestamp to record

    Returns:
        True if this call claimed the session, False if it was already
        reminded
    """
    result = await db.execute(
        update(Course)
        .where(
            Course.id == course_id,
            Course.last_reminder_sent_at.is_(None),
        )
        .values(last_reminder_sent_at=sent_at)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    return result.rowcount == 1


async def increment_enrollment_count(db: AsyncSession, course_id: UUID) -> None:
    """Atomically add one to the course's enrollment counter. Does not commit."""
    await db.execute(
        update(Course)
        .where(Course.id == course_id)
        .values(enrollment_count=Course.enrollment_count + 1)
        .execution_options(synchronize_session=False)
    )


async def reschedule_live_session(
    db: AsyncSession,
    course_id: UUID,
    *,
    start_at: datetime | None = None,
    duration_minutes: int | None = None,
    meeting_link: str | None = None,
) -> Course | None:
    """
    Update a live session's schedule.

    When start_at differs from the stored start time, the reminder marker
    is cleared in the same statement so the new time gets its own
    reminder. An unchanged start time leaves the marker alone.

    Args:
        db: Database session
        course_id: UUID of the course
        start_at: New start time (optional)
        duration_minutes: New duration (optional)
        meeting_link: New join link (optional)

    Returns:
        The updated course, or None if not found
    """
    values: dict = {}

    if start_at is not None:
        values["session_start_at"] = start_at
        values["last_reminder_sent_at"] = case(
            (Course.session_start_at == start_at, Course.last_reminder_sent_at),
            else_=None,
        )
    if duration_minutes is not None:
        values["session_duration_minutes"] = duration_minutes
    if meeting_link is not None:
        values["meeting_link"] = meeting_link

    if values:
        await db.execute(
            update(Course)
            .where(Course.id == course_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    return await get_by_id(db, course_id)
