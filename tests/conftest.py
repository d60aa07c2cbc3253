import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["SCHEDULER_ENABLED"] = "false"

import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from academy.core.security import create_access_token
from academy.database import Base, get_db
from academy.models import (
    Coupon,
    CouponCourse,
    Course,
    CreatorRole,
    DiscountType,
    User,
    UserRole,
)
from academy.services.payment_gateway import PaymentGatewayClient, compute_signature

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"


# ==================== Fake Razorpay SDK ====================

class FakeOrderApi:
    """Stands in for razorpay.Client().order."""

    def __init__(self):
        self.created = []
        self.captured = {}
        self.error = None
        self.delay = 0.0

    def create(self, data):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        order_id = f"order_{len(self.created) + 1:04d}"
        self.created.append({**data, "id": order_id})
        return {"id": order_id, "entity": "order", "status": "created", **data}

    def payments(self, order_id):
        return {"items": self.captured.get(order_id, [])}


class FakeRazorpayClient:
    def __init__(self):
        self.order = FakeOrderApi()


class RecordingNotifier:
    def __init__(self):
        self.completed = []

    def payment_completed(self, payment_id):
        self.completed.append(payment_id)


def sign(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return compute_signature(secret, f"{order_id}|{payment_id}".encode())


# ==================== Database ====================

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(session_factory):
    """A course, a student, two affiliates, an admin and a spread of coupons."""
    now = datetime.now(timezone.utc)

    async with session_factory() as session:
        student = User(name="Asha Student", email="asha@example.com", role=UserRole.STUDENT.value)
        affiliate = User(name="Ravi Affiliate", email="ravi@example.com", role=UserRole.AFFILIATE.value)
        other_affiliate = User(name="Meera Affiliate", email="meera@example.com", role=UserRole.AFFILIATE.value)
        admin = User(name="Admin", email="admin@example.com", role=UserRole.ADMIN.value)
        session.add_all([student, affiliate, other_affiliate, admin])
        await session.flush()

        course = Course(
            title="Vedic Astrology Foundations",
            description="Twelve live sessions",
            price_inr=Decimal("10000"),
            price_usd=Decimal("120"),
            commission_rate=Decimal("20"),
            instructor="K. Sharma",
            schedule="Saturdays 10:00 IST",
            live_session_link="https://meet.example.com/vedic",
        )
        small_course = Course(title="Numerology Primer", price_inr=Decimal("500"), commission_rate=Decimal("10"))
        other_course = Course(title="Tarot Basics", price_inr=Decimal("2000"), commission_rate=Decimal("15"))
        session.add_all([course, small_course, other_course])
        await session.flush()

        def platform(code, value, kind=DiscountType.PERCENTAGE, **kwargs):
            return Coupon(
                code=code,
                discount_type=kind.value,
                discount_value=Decimal(value),
                creator_role=CreatorRole.PLATFORM.value,
                **kwargs,
            )

        def affiliate_coupon(code, value, owner, kind=DiscountType.PERCENTAGE, **kwargs):
            return Coupon(
                code=code,
                discount_type=kind.value,
                discount_value=Decimal(value),
                creator_role=CreatorRole.AFFILIATE.value,
                affiliate_id=owner.id,
                **kwargs,
            )

        coupons = {
            "SAVE10": platform("SAVE10", "10"),
            "FLAT600": platform("FLAT600", "600", DiscountType.FIXED),
            "AFF5": affiliate_coupon("AFF5", "5", affiliate),
            "AFF100": affiliate_coupon("AFF100", "100", affiliate, DiscountType.FIXED),
            "MEERA5": affiliate_coupon("MEERA5", "5", other_affiliate),
            "EXPIRED": platform("EXPIRED", "10", valid_until=now - timedelta(days=1)),
            "FUTURE": platform("FUTURE", "10", valid_from=now + timedelta(days=1)),
            "INACTIVE": platform("INACTIVE", "10", is_active=False),
            "USEDUP": platform("USEDUP", "10", max_usage_count=1, used_count=1),
            "TAROTONLY": platform("TAROTONLY", "10"),
        }
        session.add_all(coupons.values())
        await session.flush()
        session.add(CouponCourse(coupon_id=coupons["TAROTONLY"].id, course_id=other_course.id))

        await session.commit()

    return SimpleNamespace(
        student=student,
        affiliate=affiliate,
        other_affiliate=other_affiliate,
        admin=admin,
        course=course,
        small_course=small_course,
        other_course=other_course,
        coupons=coupons,
    )


# ==================== Gateway ====================

@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def gateway(razorpay_client):
    return PaymentGatewayClient(
        key_id="rzp_test_key",
        key_secret=KEY_SECRET,
        webhook_secret=WEBHOOK_SECRET,
        timeout=0.5,
        client=razorpay_client,
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


# ==================== API ====================

@pytest.fixture
async def client(session_factory, gateway, notifier):
    from academy.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.gateway = gateway
    app.state.notifier = notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    app.state.gateway = None
    app.state.notifier = None


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
