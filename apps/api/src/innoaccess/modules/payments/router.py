"""
Payments Router

Endpoints:
- POST /payments/orders - Start checkout for a paid course
- POST /webhooks/paymob?hmac=... - Paymob transaction-processed callback

Security:
- Checkout requires an authenticated user allowed to enroll, rate limited per user
- The webhook is authenticated by its HMAC signature, rate limited per IP
- Payloads and secrets are never logged
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from innoaccess.core.auth import Capability, CurrentUser, require_capability
from innoaccess.core.database import get_db
from innoaccess.core.rate_limit import rate_limit, user_rate_limit_key
from innoaccess.modules.payments import service
from innoaccess.modules.payments.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    WebhookResponse,
)
from innoaccess.modules.payments.service import PaymentServiceError

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()


def _webhook_error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


@router.post(
    "/orders",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Checkout",
    responses={
        404: {"description": "Course not found or not published"},
        409: {"description": "Already enrolled, or a payment is already in progress"},
        429: {"description": "Too many checkout attempts"},
    },
)
@rate_limit(limit=10, window_seconds=60, key_func=user_rate_limit_key)
async def create_order(
    request: Request,
    data: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_capability(Capability.ENROLL_IN_COURSE)),
) -> CheckoutResponse:
    """
    Create a PENDING order for a paid course.

    The returned order_id is passed to the gateway as the merchant order id;
    the order is settled by the gateway callback or by an admin.
    """
    try:
        order = await service.create_checkout_order(
            db,
            user_id=user.id,
            course_id=data.course_id,
            payment_method=data.payment_method,
        )

        logger.info(f"Checkout started: order={order.id}, user={user.id}")

        return CheckoutResponse(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            status=order.status,
        )

    except PaymentServiceError as e:
        logger.warning(f"Checkout refused for user {user.id}: {e.error_code}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except Exception as e:
        logger.exception(f"Unexpected error creating order: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e


@webhook_router.post(
    "/paymob",
    response_model=WebhookResponse,
    summary="Paymob Transaction Callback",
    description="""
Receives Paymob's transaction-processed callback.

The `hmac` query parameter carries the HMAC-SHA512 signature of the
transaction. Redelivered callbacks are acknowledged with
`already_processed: true` and change nothing.
""",
    responses={
        400: {"description": "Missing signature or merchant order id"},
        403: {"description": "Signature does not verify"},
        404: {"description": "Order not found"},
        500: {"description": "Store failure, safe to retry"},
    },
)
@rate_limit(limit=300, window_seconds=60)
async def paymob_webhook(
    request: Request,
    received_hmac: str | None = Query(None, alias="hmac"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Paymob callback with an unparseable body")
        return _webhook_error(
            status.HTTP_400_BAD_REQUEST, "MALFORMED_PAYLOAD", "Body must be valid JSON"
        )

    try:
        result = await service.reconcile(db, payload, received_hmac)
    except PaymentServiceError as e:
        return _webhook_error(e.status_code, e.error_code, e.message)
    except Exception as e:
        logger.exception(f"Unexpected error processing Paymob callback: {e}")
        return _webhook_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "Payment could not be processed, please retry.",
        )

    return WebhookResponse(
        message=result.message,
        order_id=result.order_id,
        status=result.status,
        already_processed=result.already_processed,
    )
