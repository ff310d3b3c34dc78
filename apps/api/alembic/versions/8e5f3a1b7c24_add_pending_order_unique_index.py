"""add unique index for pending orders per user and course

Revision ID: 8e5f3a1b7c24
Revises: 3c9d2a7e1f40
Create Date: 2026-10-19 14:00:00.000000

Two concurrent checkouts for the same course could both pass the
"no pending order" read and create two PENDING orders. The partial unique
index lets only one through; settled orders are not constrained.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8e5f3a1b7c24"
down_revision: str | Sequence[str] | None = "3c9d2a7e1f40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the partial unique index."""
    op.create_index(
        "uq_orders_pending_user_course",
        "orders",
        ["user_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
        sqlite_where=sa.text("status = 'PENDING'"),
    )


def downgrade() -> None:
    """Drop the partial unique index."""
    op.drop_index("uq_orders_pending_user_course", table_name="orders")
