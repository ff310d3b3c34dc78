"""
Course Models

A course is either recorded or live. Live courses embed their single
session schedule directly on the row: start time, duration, links and the
reminder marker.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from innoaccess.core.database import Base, UTCDateTime


class CourseType(str, enum.Enum):
    """How course content is delivered."""

    RECORDED = "RECORDED"
    LIVE = "LIVE"


class Course(Base):
    """
    Course offered on the marketplace.

    Prices are stored in minor units (piastres for EGP).

    The session columns are only meaningful for LIVE courses.
    last_reminder_sent_at is set exactly once per start time by the
    reminder job; rescheduling to a different start time clears it.
    """

    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trainer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    course_type: Mapped[CourseType] = mapped_column(
        Enum(CourseType, name="course_type", values_callable=lambda e: [t.value for t in e]),
        nullable=False,
        default=CourseType.RECORDED,
    )
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Pricing
    is_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EGP")

    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Live session
    session_start_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    session_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    recording_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_recording_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_reminder_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        # Reminder scan: live, published, start time in window, not yet reminded
        Index(
            "ix_courses_live_session_reminder",
            "course_type",
            "is_published",
            "session_start_at",
        ),
        Index("ix_courses_trainer_id", "trainer_id"),
        CheckConstraint(
            "session_duration_minutes IS NULL OR session_duration_minutes > 0",
            name="ck_courses_session_duration_positive",
        ),
    )

    @property
    def is_live(self) -> bool:
        return self.course_type == CourseType.LIVE

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, type={self.course_type.value})>"
