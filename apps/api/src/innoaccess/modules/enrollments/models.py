"""
Enrollment Models

An enrollment grants a user access to a course. It is created either by
free self-enrollment or when a paid order completes.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Enum, ForeignKey, Index, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from innoaccess.core.database import Base, UTCDateTime


class EnrollmentPaymentStatus(str, enum.Enum):
    """How access to the course was obtained."""

    FREE = "FREE"
    PAID = "PAID"


class Enrollment(Base):
    """
    A user's enrollment in a course.

    At most one row exists per (user_id, course_id); the unique constraint
    is what guarantees it under concurrent inserts.
    """

    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    # Set for paid enrollments; an order yields at most one enrollment
    order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), unique=True, nullable=True
    )

    payment_status: Mapped[EnrollmentPaymentStatus] = mapped_column(
        Enum(
            EnrollmentPaymentStatus,
            name="enrollment_payment_status",
            values_callable=lambda e: [s.value for s in e],
        ),
        nullable=False,
    )

    # Completed lesson ids, kept unique
    progress: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    enrolled_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        Index("ix_enrollments_course_id", "course_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, "
            f"payment_status={self.payment_status.value})>"
        )
