"""
Payment Models

An order records one payment attempt for a paid course. Its id doubles as
the merchant order id handed to the payment gateway.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from innoaccess.core.database import Base, UTCDateTime


class OrderStatus(str, enum.Enum):
    """
    Order lifecycle.

    PENDING is the only initial state. COMPLETED and REJECTED are terminal.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class PaymentMethod(str, enum.Enum):
    """How the student pays."""

    PAYMOB = "PAYMOB"  # Card / wallet through the gateway, settled by webhook
    MANUAL = "MANUAL"  # Bank or wallet transfer, settled by an admin


class Order(Base):
    """A payment attempt for a course. Amounts are in minor units."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EGP")

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method"),
        nullable=False,
        default=PaymentMethod.PAYMOB,
    )

    # Outcome
    external_transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

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
        Index("ix_orders_status", "status"),
        Index("ix_orders_user_course", "user_id", "course_id"),
        # At most one order in flight per student and course
        Index(
            "uq_orders_pending_user_course",
            "user_id",
            "course_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status.value}, amount={self.amount})>"
