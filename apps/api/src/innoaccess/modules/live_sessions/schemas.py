"""
Live Sessions Schemas

Pydantic schemas for request validation and response serialization.
The cron trigger response keeps the camelCase keys the scheduler expects.
"""

from datetime import datetime
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from innoaccess.modules.live_sessions.clock import SessionState


class LiveSessionResponse(BaseModel):
    """State of a live session at the time of the request."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    title: str
    start_time: datetime
    duration_minutes: int
    end_time: datetime
    state: SessionState
    countdown: str
    join_link: str | None = None
    recording_link: str | None = None
    reminder_sent: bool


class UpcomingSessionsResponse(BaseModel):
    """Sessions starting within the next 24 hours, soonest first."""

    items: list[LiveSessionResponse]


class RescheduleRequest(BaseModel):
    """Request body for PATCH /live-sessions/{course_id}/schedule."""

    start_time: AwareDatetime | None = None
    duration_minutes: int | None = Field(None, gt=0, le=24 * 60)
    meeting_link: str | None = Field(None, min_length=1, max_length=500)

    @model_validator(mode="after")
    def validate_has_changes(self) -> "RescheduleRequest":
        if self.start_time is None and self.duration_minutes is None and self.meeting_link is None:
            raise ValueError(
                "At least one of start_time, duration_minutes or meeting_link is required"
            )
        return self


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReminderSessionResult(_CamelModel):
    """Outcome for one session in a reminder run."""

    session_id: str
    title: str
    reminders_sent: int
    reminders_failed: int = 0
    skipped_participants: int = 0
    skipped_reason: str | None = None
    error: str | None = None


class ReminderRunResponse(_CamelModel):
    """Summary of one reminder run."""

    success: bool
    message: str
    executed_at: str
    total_emails_sent: int
    workshops_processed: int
    results: list[ReminderSessionResult]
