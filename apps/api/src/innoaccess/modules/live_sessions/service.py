"""
Live Sessions Service Layer

Participant and trainer views of live sessions:
- A participant's sessions starting within the next 24 hours
- The current state of one session, with the join link while it is
  starting soon or live and the recording once it has ended
- Rescheduling, which makes a moved session eligible for a new reminder
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.auth import CurrentUser, Role
from innoaccess.modules.courses import repository as course_repository
from innoaccess.modules.courses.models import Course
from innoaccess.modules.enrollments import repository as enrollment_repository
from innoaccess.modules.live_sessions.clock import (
    InvalidScheduleError,
    SessionState,
    classify,
    format_countdown,
)

logger = logging.getLogger(__name__)

UPCOMING_HORIZON = timedelta(hours=24)


class LiveSessionServiceError(Exception):
    """Base exception for live session service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class SessionNotFoundError(LiveSessionServiceError):
    """Raised when the course does not exist or has no live session."""

    def __init__(self, course_id: UUID):
        super().__init__(
            message=f"Live session for course {course_id} not found",
            error_code="SESSION_NOT_FOUND",
            status_code=404,
        )


class NotEnrolledError(LiveSessionServiceError):
    """Raised when a user asks about a session they are not enrolled in."""

    def __init__(self):
        super().__init__(
            message="You are not enrolled in this course.",
            error_code="NOT_ENROLLED",
            status_code=403,
        )


class NotCourseOwnerError(LiveSessionServiceError):
    """Raised when a trainer edits another trainer's session."""

    def __init__(self):
        super().__init__(
            message="Only the course's trainer or an admin can reschedule this session.",
            error_code="NOT_COURSE_OWNER",
            status_code=403,
        )


class InvalidSessionScheduleError(LiveSessionServiceError):
    """Raised when the stored schedule of a session is malformed."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_SCHEDULE",
            status_code=422,
        )


@dataclass(frozen=True)
class LiveSessionView:
    """A live session as seen at a given instant."""

    course_id: UUID
    title: str
    start_time: datetime
    duration_minutes: int
    end_time: datetime
    state: SessionState
    countdown: str
    join_link: str | None
    recording_link: str | None
    reminder_sent: bool


def build_view(course: Course, now: datetime) -> LiveSessionView:
    """
    Describe a course's session at `now`.

    Raises:
        InvalidScheduleError: If the stored schedule is malformed
    """
    state = classify(now, course.session_start_at, course.session_duration_minutes)

    join_link = None
    if state in (SessionState.STARTING_SOON, SessionState.LIVE_NOW):
        join_link = course.meeting_link

    recording_link = None
    if state is SessionState.ENDED and course.is_recording_available:
        recording_link = course.recording_link

    return LiveSessionView(
        course_id=course.id,
        title=course.title,
        start_time=course.session_start_at,
        duration_minutes=course.session_duration_minutes,
        end_time=course.session_start_at + timedelta(minutes=course.session_duration_minutes),
        state=state,
        countdown=format_countdown(now, course.session_start_at, course.session_duration_minutes),
        join_link=join_link,
        recording_link=recording_link,
        reminder_sent=course.last_reminder_sent_at is not None,
    )


async def _get_live_course(db: AsyncSession, course_id: UUID) -> Course:
    course = await course_repository.get_by_id(db, course_id)
    if course is None or not course.is_live or course.session_start_at is None:
        raise SessionNotFoundError(course_id)
    return course


async def get_upcoming_sessions(
    db: AsyncSession,
    user_id: UUID,
    now: datetime | None = None,
) -> list[LiveSessionView]:
    """
    Get the user's sessions starting within 24 hours that have not ended,
    soonest first. Sessions with a malformed schedule are left out.
    """
    now = now or datetime.now(UTC)

    courses = await enrollment_repository.list_live_courses_for_user(
        db, user_id, starts_before=now + UPCOMING_HORIZON
    )

    views = []
    for course in courses:
        try:
            view = build_view(course, now)
        except InvalidScheduleError as e:
            logger.warning(f"Skipping session {course.id} with invalid schedule: {e}")
            continue

        if view.state is not SessionState.ENDED:
            views.append(view)

    return views


async def get_session_status(
    db: AsyncSession,
    user: CurrentUser,
    course_id: UUID,
    now: datetime | None = None,
) -> LiveSessionView:
    """
    Get one session's current state.

    Enrolled participants, the course's trainer and admins may look.

    Raises:
        SessionNotFoundError: Course missing or not live
        NotEnrolledError: Caller has no access
        InvalidSessionScheduleError: Stored schedule is malformed
    """
    now = now or datetime.now(UTC)
    course = await _get_live_course(db, course_id)

    is_owner = course.trainer_id == user.id
    if not (is_owner or user.role is Role.ADMIN):
        if not await enrollment_repository.is_enrolled(db, user.id, course_id):
            raise NotEnrolledError()

    try:
        return build_view(course, now)
    except InvalidScheduleError as e:
        logger.error(f"Session {course_id} has an invalid schedule: {e}")
        raise InvalidSessionScheduleError(str(e)) from e


async def reschedule_session(
    db: AsyncSession,
    user: CurrentUser,
    course_id: UUID,
    *,
    start_time: datetime | None = None,
    duration_minutes: int | None = None,
    meeting_link: str | None = None,
) -> LiveSessionView:
    """
    Change a session's start time, duration or meeting link.

    Moving the start time clears the reminder marker so the new time gets
    its own reminder.

    Raises:
        SessionNotFoundError: Course missing or not live
        NotCourseOwnerError: Caller is neither the trainer nor an admin
    """
    course = await _get_live_course(db, course_id)

    if course.trainer_id != user.id and user.role is not Role.ADMIN:
        raise NotCourseOwnerError()

    was_reminded = course.last_reminder_sent_at is not None

    updated = await course_repository.reschedule_live_session(
        db,
        course_id,
        start_at=start_time,
        duration_minutes=duration_minutes,
        meeting_link=meeting_link,
    )
    if updated is None:
        raise SessionNotFoundError(course_id)

    if was_reminded and updated.last_reminder_sent_at is None:
        logger.info(f"Session {course_id} moved; reminder will be sent for the new start time")

    logger.info(f"User {user.id} rescheduled session {course_id}")

    return build_view(updated, datetime.now(UTC))
