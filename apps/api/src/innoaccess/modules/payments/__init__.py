"""
Payments Module

Handles paid course access:
1. Checkout creates a PENDING order for a paid course
2. Paymob's transaction callback settles the order exactly once and
   enrolls the student on success
3. Admins settle manual (transfer) payments through the same path

API Endpoints:
- POST /payments/orders - Start checkout
- POST /webhooks/paymob - Gateway callback (HMAC-SHA512 signed)
- GET /admin/orders - Review queue
- POST /admin/orders/{id}/approve - Approve a manual payment
- POST /admin/orders/{id}/reject - Reject a manual payment
"""

from .admin_router import router as admin_router
from .router import router, webhook_router

__all__ = ["router", "webhook_router", "admin_router"]
