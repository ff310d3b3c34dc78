"""
HTTP tests for checkout, the Paymob webhook and admin order review.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from innoaccess.core.auth import get_current_user
from innoaccess.core.database import get_db
from innoaccess.modules.payments import admin_router, router, webhook_router
from innoaccess.modules.payments.models import Order, OrderStatus, PaymentMethod
from innoaccess.modules.payments.service import (
    AuthenticationFailedError,
    MalformedPayloadError,
    OrderNotPendingError,
    PendingOrderExistsError,
    ReconciliationInternalError,
    ReconciliationResult,
)

SERVICE = "innoaccess.modules.payments.service"


@pytest.fixture
def app(mock_db, student):
    app = FastAPI()
    app.include_router(router, prefix="/payments")
    app.include_router(webhook_router, prefix="/webhooks")
    app.include_router(admin_router, prefix="/admin/orders")

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_user] = lambda: student
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def order(student, now):
    return Order(
        id=uuid4(),
        user_id=student.id,
        course_id=uuid4(),
        amount=50000,
        currency="EGP",
        status=OrderStatus.PENDING,
        payment_method=PaymentMethod.MANUAL,
        created_at=now,
    )


class TestPaymobWebhook:
    """Tests for POST /webhooks/paymob."""

    def test_processed(self, client):
        order_id = uuid4()
        result = ReconciliationResult(
            order_id=order_id, status=OrderStatus.COMPLETED, already_processed=False
        )
        with patch(f"{SERVICE}.reconcile", new=AsyncMock(return_value=result)) as reconcile:
            response = client.post("/webhooks/paymob?hmac=abc123", json={"obj": {"id": 1}})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Payment completed",
            "order_id": str(order_id),
            "status": "COMPLETED",
            "already_processed": False,
        }
        assert reconcile.await_args.args[1] == {"obj": {"id": 1}}
        assert reconcile.await_args.args[2] == "abc123"

    def test_redelivery_acknowledged(self, client):
        result = ReconciliationResult(
            order_id=uuid4(), status=OrderStatus.REJECTED, already_processed=True
        )
        with patch(f"{SERVICE}.reconcile", new=AsyncMock(return_value=result)):
            response = client.post("/webhooks/paymob?hmac=abc", json={"obj": {}})

        assert response.status_code == 200
        assert response.json()["already_processed"] is True
        assert response.json()["message"] == "Payment already processed"

    def test_unparseable_body(self, client):
        response = client.post(
            "/webhooks/paymob?hmac=abc",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MALFORMED_PAYLOAD"

    @pytest.mark.parametrize(
        "error,status_code,code",
        [
            (MalformedPayloadError("Missing HMAC signature"), 400, "MALFORMED_PAYLOAD"),
            (AuthenticationFailedError(), 403, "INVALID_SIGNATURE"),
            (ReconciliationInternalError(), 500, "INTERNAL_ERROR"),
        ],
    )
    def test_service_errors(self, client, error, status_code, code):
        with patch(f"{SERVICE}.reconcile", new=AsyncMock(side_effect=error)):
            response = client.post("/webhooks/paymob", json={"obj": {}})

        assert response.status_code == status_code
        assert response.json() == {
            "success": False,
            "error": {"code": code, "message": error.message},
        }

    def test_unexpected_error(self, client):
        with patch(f"{SERVICE}.reconcile", new=AsyncMock(side_effect=RuntimeError("bug"))):
            response = client.post("/webhooks/paymob?hmac=abc", json={"obj": {}})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestCheckout:
    """Tests for POST /payments/orders."""

    def test_creates_order(self, client, order):
        with patch(f"{SERVICE}.create_checkout_order", new=AsyncMock(return_value=order)):
            response = client.post("/payments/orders", json={"course_id": str(order.course_id)})

        assert response.status_code == 201
        assert response.json() == {
            "order_id": str(order.id),
            "amount": 50000,
            "currency": "EGP",
            "status": "PENDING",
        }

    def test_pending_order_conflict(self, client, order):
        refused = AsyncMock(side_effect=PendingOrderExistsError(order.id))
        with patch(f"{SERVICE}.create_checkout_order", new=refused):
            response = client.post("/payments/orders", json={"course_id": str(order.course_id)})

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "PENDING_ORDER_EXISTS"


class TestAdminOrders:
    """Tests for the admin review endpoints."""

    def test_learner_forbidden(self, client, order):
        response = client.post(f"/admin/orders/{order.id}/approve")
        assert response.status_code == 403

    def test_approve(self, app, client, admin, order):
        app.dependency_overrides[get_current_user] = lambda: admin
        order.status = OrderStatus.COMPLETED

        with patch(f"{SERVICE}.admin_approve_order", new=AsyncMock(return_value=order)):
            response = client.post(f"/admin/orders/{order.id}/approve")

        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"

    def test_approve_settled_order(self, app, client, admin, order):
        app.dependency_overrides[get_current_user] = lambda: admin
        refused = AsyncMock(side_effect=OrderNotPendingError(OrderStatus.REJECTED))

        with patch(f"{SERVICE}.admin_approve_order", new=refused):
            response = client.post(f"/admin/orders/{order.id}/approve")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "ORDER_NOT_PENDING"

    def test_reject_requires_reason(self, app, client, admin, order):
        app.dependency_overrides[get_current_user] = lambda: admin

        response = client.post(f"/admin/orders/{order.id}/reject", json={"reason": "no"})

        assert response.status_code == 422

    def test_list_filters_by_status(self, app, client, admin, order):
        app.dependency_overrides[get_current_user] = lambda: admin

        listing = AsyncMock(return_value=([order], 1))
        with patch(f"{SERVICE}.admin_list_orders", new=listing):
            response = client.get("/admin/orders?status=PENDING&limit=10")

        assert response.status_code == 200
        assert listing.await_args.kwargs["status"] is OrderStatus.PENDING
        assert listing.await_args.kwargs["limit"] == 10
