"""
Tests for the workshop reminder job.

Runs against an in-memory SQLite database so the reminder window query and
the claim on last_reminder_sent_at are exercised for real. Emails are
mocked.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from innoaccess.core import scheduler
from innoaccess.modules.courses import repository as course_repository
from innoaccess.modules.courses.models import CourseType
from innoaccess.modules.live_sessions.jobs import (
    JOB_ID_SEND_WORKSHOP_REMINDERS,
    format_start_time,
    has_contact_address,
    register_live_session_jobs,
    send_workshop_reminders,
)

JOBS = "innoaccess.modules.live_sessions.jobs"


async def _reminder_marker(session_maker, course_id):
    async with session_maker() as db:
        course = await course_repository.get_by_id(db, course_id)
        return course.last_reminder_sent_at


@pytest.fixture
def mock_send():
    return AsyncMock(return_value=True)


@pytest.fixture
def job_env(session_maker, mock_send):
    """Point the job at the test database and the email mock."""
    with (
        patch(f"{JOBS}.async_session_maker", session_maker),
        patch(f"{JOBS}.send_workshop_reminder", mock_send),
    ):
        yield


class TestHelpers:
    """Tests for small helpers used when sending."""

    @pytest.mark.parametrize(
        "email,expected",
        [("a@b.com", True), ("", False), (None, False), ("not-an-address", False)],
    )
    def test_has_contact_address(self, email, expected):
        assert has_contact_address(email) is expected

    def test_format_start_time(self, now):
        start = now.replace(hour=15)
        assert format_start_time(start, "UTC") == "Monday, October 19, 2026 at 03:00 PM UTC"


class TestSendWorkshopReminders:
    """Tests for send_workshop_reminders."""

    @pytest.mark.asyncio
    async def test_reminds_participants_with_addresses(
        self, job_env, mock_send, session_maker, now, make_course, make_user, make_enrollment
    ):
        """Three participants, one without email: two reminders, session marked."""
        course = await make_course(session_start_at=now + timedelta(minutes=12))
        for email in ("ana@test.com", "omar@test.com", None):
            user = await make_user(name="Participant", email=email)
            await make_enrollment(user, course)

        result = await send_workshop_reminders(now=now)

        assert result["success"] is True
        assert result["workshops_processed"] == 1
        assert result["total_emails_sent"] == 2

        summary = result["results"][0]
        assert summary["session_id"] == str(course.id)
        assert summary["reminders_sent"] == 2
        assert summary["reminders_failed"] == 0
        assert summary["skipped_participants"] == 1

        assert mock_send.await_count == 2
        sent_to = {call.kwargs["to_email"] for call in mock_send.await_args_list}
        assert sent_to == {"ana@test.com", "omar@test.com"}
        assert mock_send.await_args.kwargs["meeting_link"] == course.meeting_link

        assert await _reminder_marker(session_maker, course.id) == now

    @pytest.mark.asyncio
    async def test_second_pass_sends_nothing(
        self, job_env, mock_send, now, make_course, make_user, make_enrollment
    ):
        """A session is reminded once however many passes see it."""
        course = await make_course(session_start_at=now + timedelta(minutes=13))
        await make_enrollment(await make_user(), course)

        first = await send_workshop_reminders(now=now)
        second = await send_workshop_reminders(now=now + timedelta(minutes=1))

        assert first["total_emails_sent"] == 1
        assert second["total_emails_sent"] == 0
        assert second["workshops_processed"] == 0
        assert second["message"] == "No workshops to remind"
        assert mock_send.await_count == 1

    @pytest.mark.asyncio
    async def test_session_without_enrollments_stays_unmarked(
        self, job_env, mock_send, session_maker, now, make_course
    ):
        """Nobody to remind: the session is left eligible."""
        course = await make_course(session_start_at=now + timedelta(minutes=11))

        result = await send_workshop_reminders(now=now)

        assert result["results"][0]["skipped_reason"] == "no_enrollments"
        assert result["total_emails_sent"] == 0
        mock_send.assert_not_awaited()
        assert await _reminder_marker(session_maker, course.id) is None

    @pytest.mark.asyncio
    async def test_window_edges_are_inclusive(
        self, job_env, now, make_course, make_user, make_enrollment
    ):
        """Sessions at exactly +10 and +15 minutes are reminded; others are not."""
        trainer = await make_user(name="Trainer")
        participant = await make_user()

        offsets = {5: False, 10: True, 15: True, 16: False, 60: False}
        courses = {}
        for minutes in offsets:
            course = await make_course(
                trainer=trainer,
                title=f"Session +{minutes}",
                session_start_at=now + timedelta(minutes=minutes),
            )
            await make_enrollment(participant, course)
            courses[minutes] = course

        result = await send_workshop_reminders(now=now)

        reminded = {r["session_id"] for r in result["results"]}
        expected = {str(courses[m].id) for m, included in offsets.items() if included}
        assert reminded == expected

    @pytest.mark.asyncio
    async def test_ignores_unpublished_and_recorded_courses(
        self, job_env, now, make_course, make_user, make_enrollment
    ):
        participant = await make_user()
        start = now + timedelta(minutes=12)

        draft = await make_course(is_published=False, session_start_at=start)
        recorded = await make_course(course_type=CourseType.RECORDED, session_start_at=start)
        for course in (draft, recorded):
            await make_enrollment(participant, course)

        result = await send_workshop_reminders(now=now)

        assert result["workshops_processed"] == 0

    @pytest.mark.asyncio
    async def test_failing_session_does_not_stop_others(
        self, job_env, mock_send, session_maker, now, make_course, make_user, make_enrollment
    ):
        """A malformed session is reported; the healthy one is still reminded."""
        participant = await make_user(email="learner@test.com")
        broken = await make_course(
            title="Broken", session_start_at=now + timedelta(minutes=11), meeting_link=None
        )
        healthy = await make_course(title="Healthy", session_start_at=now + timedelta(minutes=14))
        await make_enrollment(participant, broken)
        await make_enrollment(participant, healthy)

        result = await send_workshop_reminders(now=now)

        by_id = {r["session_id"]: r for r in result["results"]}
        assert "error" in by_id[str(broken.id)]
        assert by_id[str(broken.id)]["reminders_sent"] == 0
        assert by_id[str(healthy.id)]["reminders_sent"] == 1
        assert result["total_emails_sent"] == 1

        assert await _reminder_marker(session_maker, broken.id) is None
        assert await _reminder_marker(session_maker, healthy.id) == now

    @pytest.mark.asyncio
    async def test_failed_sends_are_counted(
        self, job_env, mock_send, session_maker, now, make_course, make_user, make_enrollment
    ):
        """A send returning False and a send raising both count as failed."""
        course = await make_course(session_start_at=now + timedelta(minutes=12))
        for index in range(3):
            await make_enrollment(await make_user(name=f"Participant {index}"), course)

        mock_send.side_effect = [True, False, RuntimeError("provider down")]

        result = await send_workshop_reminders(now=now)

        summary = result["results"][0]
        assert summary["reminders_sent"] == 1
        assert summary["reminders_failed"] == 2
        assert result["total_emails_sent"] == 1
        # Claimed before sending, so failures are not retried
        assert await _reminder_marker(session_maker, course.id) == now

    @pytest.mark.asyncio
    async def test_already_claimed_session_is_skipped(
        self, job_env, mock_send, now, make_course, make_user, make_enrollment
    ):
        """A concurrent run that claimed the session first wins."""
        course = await make_course(session_start_at=now + timedelta(minutes=12))
        await make_enrollment(await make_user(), course)

        real_claim = course_repository.claim_reminder

        async def claimed_elsewhere(db, course_id, sent_at):
            await real_claim(db, course_id, sent_at - timedelta(seconds=5))
            return await real_claim(db, course_id, sent_at)

        with patch.object(course_repository, "claim_reminder", new=claimed_elsewhere):
            result = await send_workshop_reminders(now=now)

        assert result["results"][0]["skipped_reason"] == "already_reminded"
        mock_send.assert_not_awaited()


class TestRegisterLiveSessionJobs:
    """Tests for scheduler registration."""

    def test_registers_reminder_job(self, monkeypatch):
        monkeypatch.setattr(scheduler, "_job_registry", {})

        register_live_session_jobs()

        job_ids = [job["job_id"] for job in scheduler.list_registered_jobs()]
        assert job_ids == [JOB_ID_SEND_WORKSHOP_REMINDERS]
