"""
Payments Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from innoaccess.modules.payments.models import OrderStatus, PaymentMethod


class CheckoutRequest(BaseModel):
    """Request body for POST /payments/orders."""

    course_id: UUID
    payment_method: PaymentMethod = PaymentMethod.PAYMOB


class CheckoutResponse(BaseModel):
    """The order to pay against. order_id is the gateway merchant order id."""

    order_id: UUID
    amount: int
    currency: str
    status: OrderStatus


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the gateway for a processed callback."""

    success: bool = True
    message: str
    order_id: UUID
    status: OrderStatus
    already_processed: bool


class OrderResponse(BaseModel):
    """Order as shown to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    amount: int
    currency: str
    status: OrderStatus
    payment_method: PaymentMethod
    external_transaction_ref: str | None = None
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime


class OrderListResponse(BaseModel):
    """Paginated admin order list."""

    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


class RejectOrderRequest(BaseModel):
    """Request body for rejecting a manual payment."""

    reason: str = Field(..., min_length=10, max_length=1000)
