"""create users, courses, orders and enrollments

Revision ID: 3c9d2a7e1f40
Revises:
Create Date: 2026-10-19 09:00:00.000000

Courses carry their live session inline. The reminder scan index covers
(course_type, is_published, session_start_at); enrollments are unique per
(user_id, course_id), which is what makes concurrent enrollment safe.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c9d2a7e1f40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

user_role = sa.Enum("user", "company", "trainer", "admin", name="user_role")
course_type = sa.Enum("RECORDED", "LIVE", name="course_type")
order_status = sa.Enum("PENDING", "COMPLETED", "REJECTED", name="order_status")
payment_method = sa.Enum("PAYMOB", "MANUAL", name="payment_method")
enrollment_payment_status = sa.Enum("FREE", "PAID", name="enrollment_payment_status")


def upgrade() -> None:
    """Create the four tables and their indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("trainer_id", sa.Uuid(), nullable=False),
        sa.Column("course_type", course_type, nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("is_free", sa.Boolean(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("enrollment_count", sa.Integer(), nullable=False),
        sa.Column("session_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("meeting_link", sa.String(length=500), nullable=True),
        sa.Column("recording_link", sa.String(length=500), nullable=True),
        sa.Column("is_recording_available", sa.Boolean(), nullable=False),
        sa.Column("last_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["trainer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "session_duration_minutes IS NULL OR session_duration_minutes > 0",
            name="ck_courses_session_duration_positive",
        ),
    )
    op.create_index(
        "ix_courses_live_session_reminder",
        "courses",
        ["course_type", "is_published", "session_start_at"],
        unique=False,
    )
    op.create_index("ix_courses_trainer_id", "courses", ["trainer_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("course_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("external_transaction_ref", sa.String(length=100), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Uuid(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_user_course", "orders", ["user_id", "course_id"], unique=False)

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("course_id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=True),
        sa.Column("payment_status", enrollment_payment_status, nullable=False),
        sa.Column("progress", sa.JSON(), nullable=False),
        sa.Column(
            "enrolled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        sa.UniqueConstraint("order_id"),
    )
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"], unique=False)


def downgrade() -> None:
    """Drop the tables and enum types."""
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("ix_orders_user_course", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_table("orders")

    op.drop_index("ix_courses_trainer_id", table_name="courses")
    op.drop_index("ix_courses_live_session_reminder", table_name="courses")
    op.drop_table("courses")

    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        enrollment_payment_status,
        payment_method,
        order_status,
        course_type,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
