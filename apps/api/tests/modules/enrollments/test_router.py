"""
HTTP tests for free self-enrollment.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from innoaccess.core.auth import get_current_user
from innoaccess.core.database import get_db
from innoaccess.modules.enrollments import router
from innoaccess.modules.enrollments.models import Enrollment, EnrollmentPaymentStatus
from innoaccess.modules.enrollments.service import PaymentRequiredError

ENROLL_FREE = "innoaccess.modules.enrollments.service.enroll_free"


@pytest.fixture
def client(mock_db, student):
    app = FastAPI()
    app.include_router(router, prefix="/courses")

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_user] = lambda: student
    return TestClient(app)


@pytest.fixture
def enrollment(student, now):
    return Enrollment(
        id=uuid4(),
        user_id=student.id,
        course_id=uuid4(),
        payment_status=EnrollmentPaymentStatus.FREE,
        enrolled_at=now,
    )


class TestEnroll:
    """Tests for POST /courses/{course_id}/enroll."""

    def test_new_enrollment(self, client, enrollment):
        with patch(ENROLL_FREE, new=AsyncMock(return_value=(enrollment, True))):
            response = client.post(f"/courses/{enrollment.course_id}/enroll")

        assert response.status_code == 201
        assert response.json()["created"] is True
        assert response.json()["payment_status"] == "FREE"

    def test_already_enrolled(self, client, enrollment):
        with patch(ENROLL_FREE, new=AsyncMock(return_value=(enrollment, False))):
            response = client.post(f"/courses/{enrollment.course_id}/enroll")

        assert response.status_code == 200
        assert response.json()["created"] is False
        assert response.json()["id"] == str(enrollment.id)

    def test_paid_course(self, client):
        with patch(ENROLL_FREE, new=AsyncMock(side_effect=PaymentRequiredError())):
            response = client.post(f"/courses/{uuid4()}/enroll")

        assert response.status_code == 402
        assert response.json()["detail"]["error"] == "PAYMENT_REQUIRED"
