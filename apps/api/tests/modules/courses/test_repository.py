"""
Tests for the courses repository against SQLite.

These focus on the conditional updates: the reminder claim, the
enrollment counter and rescheduling.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from innoaccess.modules.courses import repository


class TestClaimReminder:
    """Tests for the reminder compare-and-set."""

    @pytest.mark.asyncio
    async def test_first_claim_wins(self, db_session, now, make_course):
        course = await make_course(session_start_at=now + timedelta(minutes=12))

        assert await repository.claim_reminder(db_session, course.id, now) is True
        assert await repository.claim_reminder(db_session, course.id, now) is False

        stored = await repository.get_by_id(db_session, course.id)
        assert stored.last_reminder_sent_at == now

    @pytest.mark.asyncio
    async def test_later_claim_does_not_overwrite(self, db_session, now, make_course):
        course = await make_course()

        await repository.claim_reminder(db_session, course.id, now)
        await repository.claim_reminder(db_session, course.id, now + timedelta(minutes=1))

        stored = await repository.get_by_id(db_session, course.id)
        assert stored.last_reminder_sent_at == now


class TestFindSessionsNeedingReminder:
    """Tests for the reminder window query."""

    @pytest.mark.asyncio
    async def test_excludes_reminded_sessions(self, db_session, now, make_course):
        start = now + timedelta(minutes=12)
        pending = await make_course(title="Pending", session_start_at=start)
        reminded = await make_course(
            title="Reminded", session_start_at=start, last_reminder_sent_at=now
        )

        found = await repository.find_sessions_needing_reminder(
            db_session, now + timedelta(minutes=10), now + timedelta(minutes=15)
        )

        ids = [course.id for course in found]
        assert pending.id in ids
        assert reminded.id not in ids

    @pytest.mark.asyncio
    async def test_sorted_by_start(self, db_session, now, make_course):
        later = await make_course(session_start_at=now + timedelta(minutes=14))
        sooner = await make_course(session_start_at=now + timedelta(minutes=11))

        found = await repository.find_sessions_needing_reminder(
            db_session, now + timedelta(minutes=10), now + timedelta(minutes=15)
        )

        assert [course.id for course in found] == [sooner.id, later.id]


class TestIncrementEnrollmentCount:
    @pytest.mark.asyncio
    async def test_adds_one(self, db_session, make_course):
        course = await make_course(enrollment_count=4)

        await repository.increment_enrollment_count(db_session, course.id)
        await db_session.commit()

        stored = await repository.get_by_id(db_session, course.id)
        assert stored.enrollment_count == 5


class TestRescheduleLiveSession:
    """Tests for rescheduling and the reminder marker."""

    @pytest.mark.asyncio
    async def test_moving_start_clears_marker(self, db_session, now, make_course):
        course = await make_course(
            session_start_at=now + timedelta(minutes=12), last_reminder_sent_at=now
        )
        new_start = now + timedelta(days=1)

        updated = await repository.reschedule_live_session(
            db_session, course.id, start_at=new_start
        )

        assert updated.session_start_at == new_start
        assert updated.last_reminder_sent_at is None

    @pytest.mark.asyncio
    async def test_same_start_keeps_marker(self, db_session, now, make_course):
        start = now + timedelta(minutes=12)
        course = await make_course(session_start_at=start, last_reminder_sent_at=now)

        updated = await repository.reschedule_live_session(db_session, course.id, start_at=start)

        assert updated.last_reminder_sent_at == now

    @pytest.mark.asyncio
    async def test_other_fields_keep_marker(self, db_session, now, make_course):
        course = await make_course(last_reminder_sent_at=now)

        updated = await repository.reschedule_live_session(
            db_session,
            course.id,
            duration_minutes=90,
            meeting_link="https://meet.example.com/new-room",
        )

        assert updated.session_duration_minutes == 90
        assert updated.meeting_link == "https://meet.example.com/new-room"
        assert updated.last_reminder_sent_at == now

    @pytest.mark.asyncio
    async def test_unknown_course_returns_none(self, db_session, now):
        assert (
            await repository.reschedule_live_session(db_session, uuid4(), start_at=now) is None
        )
