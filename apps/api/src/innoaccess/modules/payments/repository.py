"""
Payments Repository

Database operations for orders.

Status changes go through transition_order, a single conditional UPDATE
that only matches PENDING rows; it is what makes a transition happen at
most once when callbacks are delivered concurrently or repeatedly.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Order, OrderStatus, PaymentMethod

logger = logging.getLogger(__name__)


async def create_order(
    db: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    amount: int,
    currency: str,
    payment_method: PaymentMethod,
) -> Order:
    """Create a PENDING order. The caller commits."""
    order = Order(
        user_id=user_id,
        course_id=course_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        status=OrderStatus.PENDING,
    )

    db.add(order)
    await db.flush()
    await db.refresh(order)

    logger.info(f"Created order {order.id} for user {user_id}, course {course_id}")
    return order


async def get_order(db: AsyncSession, order_id: UUID) -> Order | None:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_pending_order(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> Order | None:
    result = await db.execute(
        select(Order)
        .where(
            Order.user_id == user_id,
            Order.course_id == course_id,
            Order.status == OrderStatus.PENDING,
        )
        .order_by(desc(Order.created_at))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def transition_order(
    db: AsyncSession,
    order_id: UUID,
    to_status: OrderStatus,
    *,
    external_transaction_ref: str | None = None,
    rejection_reason: str | None = None,
    reviewed_by: UUID | None = None,
    reviewed_at: datetime | None = None,
) -> bool:
    """
    Move an order out of PENDING.

    Does not commit, so the caller can make the enrollment part of the
    same transaction.

    Args:
        db: Database session
        order_id: UUID of the order
        to_status: COMPLETED or REJECTED
        external_transaction_ref: Gateway transaction id
        rejection_reason: Why the order was rejected
        reviewed_by: Admin who settled a manual payment
        reviewed_at: When the admin settled it

    Returns:
        True if the order was PENDING and is now in to_status, False if
        it had already left PENDING

    Raises:
        ValueError: If to_status is PENDING
    """
    if to_status is OrderStatus.PENDING:
        raise ValueError("Orders cannot transition back to PENDING")

    values: dict = {"status": to_status}
    if external_transaction_ref is not None:
        values["external_transaction_ref"] = external_transaction_ref
    if rejection_reason is not None:
        values["rejection_reason"] = rejection_reason
    if reviewed_by is not None:
        values["reviewed_by"] = reviewed_by
        values["reviewed_at"] = reviewed_at

    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.status == OrderStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def list_orders(
    db: AsyncSession,
    *,
    status: OrderStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Order], int]:
    """
    Get orders for the admin review queue, oldest first.

    Returns:
        Tuple of (orders, total count matching the filter)
    """
    query = select(Order)

    if status:
        query = query.where(Order.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Order.created_at, Order.id).offset(skip).limit(limit)
    result = await db.execute(query)

    return list(result.scalars().all()), total
