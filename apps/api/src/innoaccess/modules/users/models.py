"""
User Models

Accounts are provisioned by the identity provider; this table mirrors the
fields the API needs to attribute orders and reach participants.
"""

import uuid
from datetime import datetime

from sqlalchemy import Enum, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from innoaccess.core.auth import Role
from innoaccess.core.database import Base, UTCDateTime


class User(Base):
    """A platform account (learner, company, trainer or admin)."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Nullable: some accounts sign in with a phone number only
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", values_callable=lambda e: [r.value for r in e]),
        nullable=False,
        default=Role.USER,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role.value})>"
