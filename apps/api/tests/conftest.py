"""
Shared fixtures for the InnoAccess API test suite.

Two kinds of database fixtures are provided:
- mock_db: an AsyncMock session for service tests that patch the repositories
- db_session / session_maker: a real in-memory SQLite database (aiosqlite)
  for tests that exercise the SQL itself (conditional updates, savepoints,
  unique constraints)
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from innoaccess.core.auth import CurrentUser, Role
from innoaccess.core.database import Base
from innoaccess.modules.courses.models import Course, CourseType
from innoaccess.modules.enrollments.models import Enrollment, EnrollmentPaymentStatus
from innoaccess.modules.payments.models import Order, OrderStatus, PaymentMethod
from innoaccess.modules.users.models import User

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

_GENERATE = object()


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def mock_redis():
    """Create a mock Redis client with a pipeline."""
    redis = AsyncMock()
    redis.pipeline = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock()
    redis.pipeline.return_value = pipe
    return redis


@pytest.fixture
def now():
    """A fixed, timezone-aware 'current time' for deterministic tests."""
    return FIXED_NOW


@pytest.fixture
def student():
    return CurrentUser(id=uuid4(), email="student@test.com", role=Role.USER, name="Student")


@pytest.fixture
def trainer():
    return CurrentUser(id=uuid4(), email="trainer@test.com", role=Role.TRAINER, name="Trainer")


@pytest.fixture
def admin():
    return CurrentUser(id=uuid4(), email="admin@test.com", role=Role.ADMIN, name="Admin")


# ============================================
# SQLite database
# ============================================


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine with every table created.

    pysqlite's own transaction handling breaks SAVEPOINT, so BEGIN is
    emitted explicitly.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    """
    Session used for seeding and by services under test.

    All connections share one SQLite connection, so a test that also opens
    its own sessions must leave this one without an open transaction.
    """
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory inserting a user. Pass email=None for an account without one."""

    async def _make_user(
        name: str = "Test User",
        email=_GENERATE,
        role: Role = Role.USER,
    ) -> User:
        if email is _GENERATE:
            email = f"user-{uuid4().hex[:8]}@test.com"
        user = User(id=uuid4(), name=name, email=email, role=role)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_course(db_session, make_user):
    """Factory inserting a published paid live course starting in an hour."""

    async def _make_course(trainer: User | None = None, **overrides) -> Course:
        if trainer is None:
            trainer = await make_user(name="Trainer", role=Role.TRAINER)

        values = {
            "title": "Intro to Data Analysis",
            "course_type": CourseType.LIVE,
            "is_published": True,
            "is_free": False,
            "price": 50000,
            "currency": "EGP",
            "enrollment_count": 0,
            "session_start_at": FIXED_NOW + timedelta(hours=1),
            "session_duration_minutes": 60,
            "meeting_link": "https://meet.example.com/data-analysis",
        }
        values.update(overrides)

        course = Course(id=uuid4(), trainer_id=trainer.id, **values)
        db_session.add(course)
        await db_session.commit()
        return course

    return _make_course


@pytest.fixture
def make_enrollment(db_session):
    """Factory inserting an enrollment directly, bypassing the service."""

    async def _make_enrollment(
        user: User,
        course: Course,
        payment_status: EnrollmentPaymentStatus = EnrollmentPaymentStatus.FREE,
    ) -> Enrollment:
        enrollment = Enrollment(
            id=uuid4(),
            user_id=user.id,
            course_id=course.id,
            payment_status=payment_status,
            progress=[],
        )
        db_session.add(enrollment)
        await db_session.commit()
        return enrollment

    return _make_enrollment


@pytest.fixture
def make_order(db_session):
    """Factory inserting an order for the course's price."""

    async def _make_order(
        user: User,
        course: Course,
        status: OrderStatus = OrderStatus.PENDING,
        payment_method: PaymentMethod = PaymentMethod.PAYMOB,
        amount: int | None = None,
    ) -> Order:
        order = Order(
            id=uuid4(),
            user_id=user.id,
            course_id=course.id,
            amount=course.price if amount is None else amount,
            currency=course.currency,
            status=status,
            payment_method=payment_method,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    return _make_order
