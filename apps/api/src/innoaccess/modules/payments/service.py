"""
Payments Service Layer

Business logic for course payments.

This module implements:
1. Checkout:
   - Create a PENDING order for a published paid course
   - Refuse when the user is already enrolled or has an order in flight

2. Gateway Reconciliation (Paymob transaction callback):
   - Authenticate the callback signature
   - Resolve the order from the merchant order id
   - Move the order to COMPLETED or REJECTED exactly once
   - Enroll the student in the same transaction on success

3. Manual Payment Review:
   - Admins approve or reject MANUAL orders through the same settlement
     path the gateway uses

Delivery guarantees:
- Callbacks arrive at least once and possibly concurrently. An order that
  has already left PENDING is reported as already processed.
- The order transition, the enrollment and the counter increment commit
  together or not at all, so a gateway retry after a failure is safe.
- Notification emails are sent after commit and never change the outcome.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.config import settings
from innoaccess.core.email import (
    send_new_enrollment_to_trainer,
    send_payment_confirmed,
    send_payment_rejected,
)
from innoaccess.modules.courses import repository as course_repository
from innoaccess.modules.courses.models import Course
from innoaccess.modules.enrollments import repository as enrollment_repository
from innoaccess.modules.enrollments.models import EnrollmentPaymentStatus
from innoaccess.modules.payments import gateway, repository
from innoaccess.modules.payments.models import Order, OrderStatus, PaymentMethod
from innoaccess.modules.users import repository as user_repository
from innoaccess.modules.users.models import User

logger = logging.getLogger(__name__)

GATEWAY_DECLINED_REASON = "Payment was declined by the payment gateway."


class PaymentServiceError(Exception):
    """Base exception for payment service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class AuthenticationFailedError(PaymentServiceError):
    """Raised when a callback signature does not verify."""

    def __init__(self):
        super().__init__(
            message="Invalid signature",
            error_code="INVALID_SIGNATURE",
            status_code=403,
        )


class MalformedPayloadError(PaymentServiceError):
    """Raised when a callback lacks the signature or a usable order id."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="MALFORMED_PAYLOAD",
            status_code=400,
        )


class OrderNotFoundError(PaymentServiceError):
    """Raised when an order is not found."""

    def __init__(self, order_id: UUID | None = None):
        message = f"Order {order_id} not found" if order_id else "Order not found"
        super().__init__(
            message=message,
            error_code="ORDER_NOT_FOUND",
            status_code=404,
        )


class ReconciliationInternalError(PaymentServiceError):
    """Raised when the store fails mid-reconciliation. Nothing was committed."""

    def __init__(self):
        super().__init__(
            message="Payment could not be processed, please retry.",
            error_code="INTERNAL_ERROR",
            status_code=500,
        )


class OrderNotPendingError(PaymentServiceError):
    """Raised when an admin tries to settle an order that is already settled."""

    def __init__(self, current_status: OrderStatus):
        super().__init__(
            message=f"Order is not pending (current status: {current_status.value}).",
            error_code="ORDER_NOT_PENDING",
            status_code=409,
        )


class CourseNotFoundError(PaymentServiceError):
    """Raised when the course does not exist or is not published."""

    def __init__(self, course_id: UUID):
        super().__init__(
            message=f"Course {course_id} not found",
            error_code="COURSE_NOT_FOUND",
            status_code=404,
        )


class CourseIsFreeError(PaymentServiceError):
    """Raised when checkout is attempted for a free course."""

    def __init__(self):
        super().__init__(
            message="This course is free. Enroll directly instead.",
            error_code="COURSE_IS_FREE",
            status_code=400,
        )


class AlreadyEnrolledError(PaymentServiceError):
    """Raised when the user already has access to the course."""

    def __init__(self):
        super().__init__(
            message="You are already enrolled in this course.",
            error_code="ALREADY_ENROLLED",
            status_code=409,
        )


class PendingOrderExistsError(PaymentServiceError):
    """Raised when the user already has an unsettled order for the course."""

    def __init__(self, order_id: UUID):
        self.order_id = order_id
        super().__init__(
            message="A payment for this course is already in progress.",
            error_code="PENDING_ORDER_EXISTS",
            status_code=409,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of handling one gateway callback."""

    order_id: UUID
    status: OrderStatus
    already_processed: bool
    enrollment_created: bool = False

    @property
    def message(self) -> str:
        if self.already_processed:
            return "Payment already processed"
        if self.status is OrderStatus.COMPLETED:
            return "Payment completed"
        return "Payment rejected"


@dataclass(frozen=True)
class Settlement:
    """Result of trying to move an order out of PENDING."""

    transitioned: bool
    enrollment_created: bool = False


# ============================================
# Settlement (shared by gateway and admin)
# ============================================


async def _complete_order(
    db: AsyncSession,
    order: Order,
    *,
    external_transaction_ref: str | None = None,
    reviewed_by: UUID | None = None,
) -> Settlement:
    """
    Mark an order COMPLETED and enroll the student, in one transaction.

    The enrollment insert runs in a SAVEPOINT so an existing enrollment
    for the same user and course is reused. The course counter only moves
    when a new enrollment row was inserted.

    A rollback expires the loaded order, so its ids are read up front.
    """
    order_id, user_id, course_id = order.id, order.user_id, order.course_id

    transitioned = await repository.transition_order(
        db,
        order_id,
        OrderStatus.COMPLETED,
        external_transaction_ref=external_transaction_ref,
        reviewed_by=reviewed_by,
        reviewed_at=datetime.now(UTC) if reviewed_by else None,
    )
    if not transitioned:
        await db.rollback()
        logger.info(f"Order {order_id} was settled concurrently, nothing to do")
        return Settlement(transitioned=False)

    _enrollment, created = await enrollment_repository.create_enrollment_if_absent(
        db,
        user_id=user_id,
        course_id=course_id,
        payment_status=EnrollmentPaymentStatus.PAID,
        order_id=order_id,
    )
    if created:
        await course_repository.increment_enrollment_count(db, course_id)

    await db.commit()

    logger.info(
        f"Order {order_id} completed for user {user_id}, "
        f"course {course_id} (new enrollment: {created})"
    )
    return Settlement(transitioned=True, enrollment_created=created)


async def _reject_order(
    db: AsyncSession,
    order: Order,
    reason: str,
    *,
    external_transaction_ref: str | None = None,
    reviewed_by: UUID | None = None,
) -> Settlement:
    """Mark an order REJECTED with a reason."""
    order_id = order.id

    transitioned = await repository.transition_order(
        db,
        order_id,
        OrderStatus.REJECTED,
        external_transaction_ref=external_transaction_ref,
        rejection_reason=reason,
        reviewed_by=reviewed_by,
        reviewed_at=datetime.now(UTC) if reviewed_by else None,
    )
    if not transitioned:
        await db.rollback()
        logger.info(f"Order {order_id} was settled concurrently, nothing to do")
        return Settlement(transitioned=False)

    await db.commit()

    logger.info(f"Order {order_id} rejected")
    return Settlement(transitioned=True)


async def _notify_trainer(db: AsyncSession, course: Course, student: User) -> None:
    try:
        trainer = await user_repository.get_by_id(db, course.trainer_id)
        if trainer is None or not trainer.email:
            logger.warning(f"No enrollment notice for course {course.id}: trainer has no email")
            return

        await send_new_enrollment_to_trainer(
            to_email=trainer.email,
            trainer_name=trainer.name,
            student_name=student.name,
            course_title=course.title,
            course_id=str(course.id),
        )
    except Exception as e:
        logger.error(f"Failed to notify trainer of course {course.id}: {e}", exc_info=True)


async def _notify_outcome(
    db: AsyncSession,
    *,
    order_id: UUID,
    user_id: UUID,
    course_id: UUID,
    completed: bool,
    reason: str | None = None,
    enrollment_created: bool = False,
) -> None:
    """
    Email the student the result, and the trainer when a new student joined.

    Runs after commit. Failures are logged, never raised.
    """
    try:
        user = await user_repository.get_by_id(db, user_id)
        course = await course_repository.get_by_id(db, course_id)
        if user is None or course is None:
            logger.warning(f"No notification sent for order {order_id}: missing user or course")
            return

        if not user.email:
            logger.warning(f"No notification sent to student for order {order_id}: no email")
        elif completed:
            await send_payment_confirmed(
                to_email=user.email,
                student_name=user.name,
                course_title=course.title,
                course_id=str(course.id),
            )
        else:
            await send_payment_rejected(
                to_email=user.email,
                student_name=user.name,
                course_title=course.title,
                reason=reason or GATEWAY_DECLINED_REASON,
            )
    except Exception as e:
        logger.error(f"Failed to notify user about order {order_id}: {e}", exc_info=True)
        return

    if completed and enrollment_created:
        await _notify_trainer(db, course, user)


# ============================================
# Gateway Reconciliation
# ============================================


def _merchant_order_id(transaction: dict[str, Any]) -> UUID:
    order = transaction.get("order")
    merchant_order_id = order.get("merchant_order_id") if isinstance(order, dict) else None

    if not merchant_order_id:
        raise MalformedPayloadError("Missing merchant order id")

    try:
        return UUID(str(merchant_order_id))
    except ValueError as e:
        raise MalformedPayloadError("Invalid merchant order id") from e


def _amount_matches(amount_cents: Any, expected: int) -> bool:
    if isinstance(amount_cents, bool):
        return False
    try:
        return int(amount_cents) == expected
    except (TypeError, ValueError):
        return False


def _decline_reason(transaction: dict[str, Any]) -> str:
    data = transaction.get("data")
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return GATEWAY_DECLINED_REASON


async def reconcile(
    db: AsyncSession,
    payload: Any,
    received_hmac: str | None,
) -> ReconciliationResult:
    """
    Apply a gateway transaction callback to its order.

    Safe to call any number of times, concurrently, with the same callback:
    the order leaves PENDING once and at most one enrollment exists.

    Args:
        db: Database session
        payload: Parsed JSON body of the callback
        received_hmac: Signature from the hmac query parameter

    Returns:
        ReconciliationResult (already_processed=True when another delivery
        settled the order)

    Raises:
        MalformedPayloadError: Signature or merchant order id missing/invalid
        AuthenticationFailedError: Signature does not verify
        OrderNotFoundError: No order with the merchant order id
        ReconciliationInternalError: Store failure; nothing was committed
    """
    if not received_hmac:
        raise MalformedPayloadError("Missing HMAC signature")
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Callback body must be a JSON object")

    transaction = gateway.extract_transaction(payload)
    transaction_id = transaction.get("id")

    valid, computed = gateway.verify_signature(
        transaction, received_hmac, settings.paymob_hmac_secret
    )
    if not valid:
        logger.warning(
            f"Signature mismatch for gateway transaction {transaction_id}: "
            f"computed={computed} received={received_hmac}"
        )
        raise AuthenticationFailedError()

    order_id = _merchant_order_id(transaction)
    external_ref = str(transaction_id) if transaction_id is not None else None

    try:
        order = await repository.get_order(db, order_id)
        if order is None:
            logger.warning(f"Gateway callback for unknown order {order_id}")
            raise OrderNotFoundError(order_id)

        if order.status.is_terminal:
            logger.info(f"Order {order_id} already {order.status.value}, ignoring callback")
            return ReconciliationResult(
                order_id=order.id, status=order.status, already_processed=True
            )

        user_id, course_id = order.user_id, order.course_id
        succeeded = transaction.get("success") is True
        amount_cents = transaction.get("amount_cents")

        if succeeded and _amount_matches(amount_cents, order.amount):
            target = OrderStatus.COMPLETED
            reason = None
            settlement = await _complete_order(db, order, external_transaction_ref=external_ref)
        else:
            target = OrderStatus.REJECTED
            if succeeded:
                logger.warning(
                    f"Amount mismatch for order {order_id}: "
                    f"paid {amount_cents}, expected {order.amount}"
                )
                reason = f"Paid amount {amount_cents} does not match order amount {order.amount}."
            else:
                reason = _decline_reason(transaction)
            settlement = await _reject_order(
                db, order, reason, external_transaction_ref=external_ref
            )

        if not settlement.transitioned:
            current = await repository.get_order(db, order_id)
            return ReconciliationResult(
                order_id=order_id,
                status=current.status if current else target,
                already_processed=True,
            )
    except PaymentServiceError:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Store failure while reconciling order {order_id}: {e}", exc_info=True)
        await db.rollback()
        raise ReconciliationInternalError() from e

    await _notify_outcome(
        db,
        order_id=order_id,
        user_id=user_id,
        course_id=course_id,
        completed=target is OrderStatus.COMPLETED,
        reason=reason,
        enrollment_created=settlement.enrollment_created,
    )

    return ReconciliationResult(
        order_id=order_id,
        status=target,
        already_processed=False,
        enrollment_created=settlement.enrollment_created,
    )


# ============================================
# Checkout
# ============================================


async def create_checkout_order(
    db: AsyncSession,
    *,
    user_id: UUID,
    course_id: UUID,
    payment_method: PaymentMethod,
) -> Order:
    """
    Create the PENDING order a student pays against.

    The order id is the merchant order id given to the gateway.

    Raises:
        CourseNotFoundError: Course missing or unpublished
        CourseIsFreeError: Course does not need payment
        AlreadyEnrolledError: User already enrolled
        PendingOrderExistsError: User has an unsettled order for the course
    """
    course = await course_repository.get_by_id(db, course_id)
    if course is None or not course.is_published:
        raise CourseNotFoundError(course_id)

    if course.is_free or course.price <= 0:
        raise CourseIsFreeError()

    if await enrollment_repository.is_enrolled(db, user_id, course_id):
        raise AlreadyEnrolledError()

    pending = await repository.find_pending_order(db, user_id, course_id)
    if pending is not None:
        raise PendingOrderExistsError(pending.id)

    try:
        order = await repository.create_order(
            db,
            user_id=user_id,
            course_id=course_id,
            amount=course.price,
            currency=course.currency,
            payment_method=payment_method,
        )
        await db.commit()
    except IntegrityError:
        # A concurrent checkout won the one-pending-order-per-course index
        await db.rollback()
        pending = await repository.find_pending_order(db, user_id, course_id)
        if pending is None:
            raise
        logger.info(
            f"Concurrent checkout for user {user_id}, course {course_id}: "
            f"order {pending.id} is already pending"
        )
        raise PendingOrderExistsError(pending.id) from None

    return order


# ============================================
# Manual Payment Review (Admin)
# ============================================


async def admin_list_orders(
    db: AsyncSession,
    *,
    status: OrderStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Order], int]:
    return await repository.list_orders(db, status=status, skip=skip, limit=limit)


async def _get_pending_order(db: AsyncSession, order_id: UUID) -> Order:
    order = await repository.get_order(db, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    if order.status.is_terminal:
        raise OrderNotPendingError(order.status)
    return order


async def _raise_not_pending(db: AsyncSession, order_id: UUID) -> None:
    """Report the status another writer settled the order to."""
    current = await repository.get_order(db, order_id)
    if current is None:
        raise OrderNotFoundError(order_id)
    raise OrderNotPendingError(current.status)


async def admin_approve_order(
    db: AsyncSession,
    order_id: UUID,
    admin_id: UUID,
) -> Order:
    """
    Approve a payment and enroll the student.

    Raises:
        OrderNotFoundError: If the order doesn't exist
        OrderNotPendingError: If the order was already settled
    """
    logger.info(f"Admin {admin_id} approving order {order_id}")

    order = await _get_pending_order(db, order_id)
    user_id, course_id = order.user_id, order.course_id

    settlement = await _complete_order(db, order, reviewed_by=admin_id)
    if not settlement.transitioned:
        await _raise_not_pending(db, order_id)

    await _notify_outcome(
        db,
        order_id=order_id,
        user_id=user_id,
        course_id=course_id,
        completed=True,
        enrollment_created=settlement.enrollment_created,
    )

    return await repository.get_order(db, order_id)


async def admin_reject_order(
    db: AsyncSession,
    order_id: UUID,
    admin_id: UUID,
    reason: str,
) -> Order:
    """
    Reject a payment with a reason shown to the student.

    Raises:
        OrderNotFoundError: If the order doesn't exist
        OrderNotPendingError: If the order was already settled
    """
    logger.info(f"Admin {admin_id} rejecting order {order_id}")

    order = await _get_pending_order(db, order_id)
    user_id, course_id = order.user_id, order.course_id

    settlement = await _reject_order(db, order, reason, reviewed_by=admin_id)
    if not settlement.transitioned:
        await _raise_not_pending(db, order_id)

    await _notify_outcome(
        db,
        order_id=order_id,
        user_id=user_id,
        course_id=course_id,
        completed=False,
        reason=reason,
    )

    return await repository.get_order(db, order_id)
