"""
Payments Admin Router

Manual payment review for platform administrators.

Endpoints:
- GET /admin/orders - List orders (filter by status)
- POST /admin/orders/{id}/approve - Approve a payment and enroll the student
- POST /admin/orders/{id}/reject - Reject a payment with a reason

Security:
- All endpoints require the review_orders capability
- Rate limiting on action endpoints, per admin
- Audit logging for all admin actions
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.auth import Capability, CurrentUser, require_capability
from innoaccess.core.database import get_db
from innoaccess.core.rate_limit import RateLimitExceeded, check_rate_limit
from innoaccess.modules.payments import service
from innoaccess.modules.payments.models import OrderStatus
from innoaccess.modules.payments.schemas import (
    OrderListResponse,
    OrderResponse,
    RejectOrderRequest,
)
from innoaccess.modules.payments.service import PaymentServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

require_reviewer = require_capability(Capability.REVIEW_ORDERS)

# Rate limits for admin action endpoints
RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_REJECT = (10, 60)  # 10 rejections per minute


async def _check_admin_rate_limit(
    admin: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for an admin action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"admin:{action}:{admin.id}"
    result = await check_rate_limit(key, limit, window_seconds)

    if not result.allowed:
        logger.warning(
            f"Rate limit exceeded for admin {admin.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds, result.retry_after_seconds)


def _handle_service_error(e: PaymentServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List Orders",
)
async def list_orders(
    order_status: OrderStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_reviewer),
) -> OrderListResponse:
    """List orders oldest first, optionally filtered by status."""
    orders, total = await service.admin_list_orders(
        db, status=order_status, skip=skip, limit=limit
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post(
    "/{order_id}/approve",
    response_model=OrderResponse,
    summary="Approve Payment",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Order is not pending"},
    },
)
async def approve_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_reviewer),
) -> OrderResponse:
    """
    Approve a pending payment.

    Completes the order, enrolls the student and emails them.
    """
    await _check_admin_rate_limit(admin, "approve_order", *RATE_LIMIT_APPROVE)

    try:
        order = await service.admin_approve_order(db, order_id, admin.id)

        logger.info(f"Admin {admin.id} approved order {order_id}")

        return OrderResponse.model_validate(order)

    except PaymentServiceError as e:
        logger.warning(f"Cannot approve order {order_id}: {e.message}")
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error approving order: {e}")
        raise _internal_error() from e


@router.post(
    "/{order_id}/reject",
    response_model=OrderResponse,
    summary="Reject Payment",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Order is not pending"},
    },
)
async def reject_order(
    order_id: UUID,
    data: RejectOrderRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_reviewer),
) -> OrderResponse:
    """Reject a pending payment. The reason is emailed to the student."""
    await _check_admin_rate_limit(admin, "reject_order", *RATE_LIMIT_REJECT)

    try:
        order = await service.admin_reject_order(db, order_id, admin.id, data.reason)

        logger.info(f"Admin {admin.id} rejected order {order_id}")

        return OrderResponse.model_validate(order)

    except PaymentServiceError as e:
        logger.warning(f"Cannot reject order {order_id}: {e.message}")
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error rejecting order: {e}")
        raise _internal_error() from e
