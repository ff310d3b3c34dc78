"""
Enrollments Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from innoaccess.modules.enrollments.models import EnrollmentPaymentStatus


class EnrollmentResponse(BaseModel):
    """An enrollment, with whether this request created it."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    order_id: UUID | None = None
    payment_status: EnrollmentPaymentStatus
    enrolled_at: datetime
    created: bool = False
