"""
Live Session Background Jobs

Workshop reminders: every minute, find live sessions starting in 10 to 15
minutes that have not been reminded and email every enrolled participant
once.

Design Principles:
- Jobs are idempotent (safe to run multiple times, and concurrently)
- Jobs handle their own database sessions
- Jobs log all operations for auditing
- Jobs continue processing even if individual items fail

Schedule:
- An external cron calls GET /cron/workshop-reminders once per minute
- Deployments without one can run the same job in process
  (WORKSHOP_REMINDERS_IN_PROCESS=true)

Idempotency:
- Each session is claimed with a conditional update on
  last_reminder_sent_at before any email is sent. Only the pass that
  claims it sends, so overlapping passes never double-send. A pass that
  dies after claiming leaves that session's reminders unsent.

Error Handling:
- Failure to query sessions aborts the run
- A failure while processing one session is reported in its summary and
  does not stop the others
- A failed email counts against that participant only
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from apscheduler.triggers.interval import IntervalTrigger

from innoaccess.core.config import settings
from innoaccess.core.database import async_session_maker
from innoaccess.core.email import send_workshop_reminder
from innoaccess.core.scheduler import register_job
from innoaccess.modules.courses import repository as course_repository
from innoaccess.modules.courses.models import Course
from innoaccess.modules.enrollments import repository as enrollment_repository
from innoaccess.modules.live_sessions.clock import (
    STARTING_SOON_THRESHOLD,
    InvalidScheduleError,
    classify,
)

logger = logging.getLogger(__name__)

# Reminder window, relative to now. The lower edge is the starting-soon
# threshold, so a reminder always goes out before the session reads as
# starting soon.
REMINDER_WINDOW_START = STARTING_SOON_THRESHOLD
REMINDER_WINDOW_END = timedelta(minutes=15)

# Job ID for registration and manual triggering
JOB_ID_SEND_WORKSHOP_REMINDERS = "live_sessions_send_workshop_reminders"


def has_contact_address(email: str | None) -> bool:
    return bool(email) and "@" in email


def format_start_time(start_time: datetime, timezone_name: str) -> str:
    """Format a start time for emails, e.g. 'Monday, October 19, 2026 at 06:00 PM EEST'."""
    local = start_time.astimezone(ZoneInfo(timezone_name))
    return local.strftime("%A, %B %d, %Y at %I:%M %p %Z")


def _new_summary(course_id: UUID, title: str) -> dict[str, Any]:
    return {
        "session_id": str(course_id),
        "title": title,
        "reminders_sent": 0,
        "reminders_failed": 0,
        "skipped_participants": 0,
    }


async def _process_session(
    course_id: UUID,
    title: str,
    start_time: datetime | None,
    duration_minutes: int | None,
    meeting_link: str | None,
    now: datetime,
) -> dict[str, Any]:
    """
    Send reminders for one session.

    Args:
        course_id: Course the session belongs to
        title: Course title
        start_time: Session start
        duration_minutes: Session length
        meeting_link: Join link included in the email
        now: Time of the pass, recorded as the reminder time

    Returns:
        Dict with processing result

    Raises:
        InvalidScheduleError: If the stored schedule is malformed
    """
    summary = _new_summary(course_id, title)

    classify(now, start_time, duration_minutes)
    if not meeting_link:
        raise InvalidScheduleError("Live session has no meeting link")

    async with async_session_maker() as db:
        participants = await enrollment_repository.list_participants(db, course_id)

        if not participants:
            logger.info(f"No enrollments for session {course_id}, skipping reminder")
            summary["skipped_reason"] = "no_enrollments"
            return summary

        claimed = await course_repository.claim_reminder(db, course_id, now)

    if not claimed:
        logger.info(f"Session {course_id} already reminded by another run, skipping")
        summary["skipped_reason"] = "already_reminded"
        return summary

    start_display = format_start_time(start_time, settings.display_timezone)

    for participant in participants:
        if not has_contact_address(participant.email):
            logger.warning(
                f"Participant {participant.user_id} of session {course_id} has no email address"
            )
            summary["skipped_participants"] += 1
            continue

        try:
            sent = await send_workshop_reminder(
                to_email=participant.email,
                participant_name=participant.name,
                workshop_title=title,
                start_time_display=start_display,
                meeting_link=meeting_link,
            )
        except Exception as e:
            logger.error(
                f"Reminder to participant {participant.user_id} of session {course_id} "
                f"raised: {e}"
            )
            sent = False

        if sent:
            summary["reminders_sent"] += 1
        else:
            summary["reminders_failed"] += 1

    logger.info(
        f"Session {course_id}: {summary['reminders_sent']} reminder(s) sent, "
        f"{summary['reminders_failed']} failed, "
        f"{summary['skipped_participants']} participant(s) without address"
    )
    return summary


async def send_workshop_reminders(now: datetime | None = None) -> dict[str, Any]:
    """
    Email participants of live sessions starting in 10 to 15 minutes.

    Finds sessions that:
    1. Belong to published LIVE courses
    2. Start between now + 10 minutes and now + 15 minutes (inclusive)
    3. Have not been reminded (last_reminder_sent_at is NULL)

    Args:
        now: Time of the pass (defaults to the current time)

    Returns:
        Dict with success, executed_at, total_emails_sent,
        workshops_processed and a summary per session
    """
    now = now or datetime.now(UTC)
    window_start = now + REMINDER_WINDOW_START
    window_end = now + REMINDER_WINDOW_END

    logger.info(
        f"Starting workshop reminder job: window {window_start.isoformat()} "
        f"to {window_end.isoformat()}"
    )

    async with async_session_maker() as db:
        sessions: list[Course] = await course_repository.find_sessions_needing_reminder(
            db, window_start, window_end
        )

    logger.info(f"Found {len(sessions)} session(s) to remind")

    results = []
    for course in sessions:
        try:
            summary = await _process_session(
                course_id=course.id,
                title=course.title,
                start_time=course.session_start_at,
                duration_minutes=course.session_duration_minutes,
                meeting_link=course.meeting_link,
                now=now,
            )
        except Exception as e:
            logger.error(f"Error processing reminders for session {course.id}: {e}", exc_info=True)
            summary = _new_summary(course.id, course.title)
            summary["error"] = str(e)

        results.append(summary)

    total_emails_sent = sum(r["reminders_sent"] for r in results)

    logger.info(
        f"Workshop reminder job complete: {total_emails_sent} email(s) sent "
        f"for {len(sessions)} session(s)"
    )

    return {
        "success": True,
        "message": "Workshop reminders processed" if sessions else "No workshops to remind",
        "executed_at": now.isoformat(),
        "total_emails_sent": total_emails_sent,
        "workshops_processed": len(sessions),
        "results": results,
    }


def register_live_session_jobs() -> None:
    """Register the reminder job with the in-process scheduler."""
    register_job(
        job_id=JOB_ID_SEND_WORKSHOP_REMINDERS,
        func=send_workshop_reminders,
        trigger=IntervalTrigger(minutes=1),
    )

    logger.info("Live session jobs registered")
