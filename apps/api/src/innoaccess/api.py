from fastapi import APIRouter

from innoaccess.modules.enrollments import router as enrollments_router
from innoaccess.modules.live_sessions import cron_router
from innoaccess.modules.live_sessions import router as live_sessions_router
from innoaccess.modules.payments import admin_router as admin_orders_router
from innoaccess.modules.payments import router as payments_router
from innoaccess.modules.payments import webhook_router

api_router = APIRouter()

api_router.include_router(enrollments_router, prefix="/courses", tags=["Enrollments"])

api_router.include_router(live_sessions_router, prefix="/live-sessions", tags=["Live Sessions"])

api_router.include_router(cron_router, prefix="/cron", tags=["Cron"])

api_router.include_router(payments_router, prefix="/payments", tags=["Payments"])

api_router.include_router(webhook_router, prefix="/webhooks", tags=["Webhooks"])

api_router.include_router(
    admin_orders_router,
    prefix="/admin/orders",
    tags=["Admin - Orders"],
)
