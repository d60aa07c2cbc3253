import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from academy.core.exceptions import GatewayError, NotFoundError, ValidationError
from academy.models import Course, Enrollment, Payment, PaymentChannel, PaymentStatus
from academy.services.order_service import OrderService
from academy.services.payment_gateway import PaymentGatewayClient

from tests.conftest import FakeRazorpayClient, KEY_SECRET


async def test_quote_writes_nothing(db, seed):
    quote = await OrderService(db).quote(seed.course.id, PaymentChannel.DOMESTIC, "SAVE10,AFF5")

    assert quote.breakdown.final_amount == Decimal("10089.00")
    assert quote.commission.amount == Decimal("1800.00")
    assert (await db.scalar(select(func.count(Payment.id)))) == 0


async def test_quote_unknown_course(db, seed):
    with pytest.raises(NotFoundError):
        await OrderService(db).quote(uuid.uuid4())


async def test_quote_channel_without_price(db, seed):
    with pytest.raises(ValidationError) as exc_info:
        await OrderService(db).quote(seed.small_course.id, PaymentChannel.FOREX)

    assert exc_info.value.details["channel"] == "FOREX"


async def test_initiate_persists_pending_payment_and_gateway_order(db, seed, gateway, razorpay_client):
    result = await OrderService(db, gateway).initiate(
        seed.student.id, seed.course.id, PaymentChannel.DOMESTIC, "SAVE10, AFF5"
    )
    payment = result.payment

    assert result.requires_payment
    assert result.key_id == "rzp_test_key"
    assert result.amount_minor == 1008900
    assert payment.status == PaymentStatus.PENDING.value
    assert payment.invoice_number.startswith("FT") and payment.invoice_number.endswith("G00001")
    assert payment.gateway_order_id == "order_0001"
    assert payment.currency == "INR"
    assert payment.final_amount == Decimal("10089.00")
    assert payment.affiliate_id == seed.affiliate.id
    assert payment.commission_rate == Decimal("20")
    assert payment.commission_amount == Decimal("1800.00")
    assert [pc.code for pc in payment.applied_coupons] == ["SAVE10", "AFF5"]

    sent = razorpay_client.order.created[0]
    assert sent["amount"] == 1008900
    assert sent["currency"] == "INR"
    assert sent["receipt"] == payment.invoice_number
    assert sent["notes"]["coupons"] == "SAVE10,AFF5"


async def test_initiate_forex_uses_usd_series(db, seed, gateway):
    result = await OrderService(db, gateway).initiate(seed.student.id, seed.course.id, PaymentChannel.FOREX)
    payment = result.payment

    assert payment.currency == "USD"
    assert payment.invoice_number.endswith("F00001")
    assert payment.tax_amount == Decimal("0")
    assert payment.final_amount == Decimal("120.00")
    assert payment.affiliate_id is None
    assert payment.commission_amount is None


async def test_platform_coupon_takes_no_commission_snapshot(db, seed, gateway):
    result = await OrderService(db, gateway).initiate(seed.student.id, seed.course.id, coupon_codes="SAVE10")

    assert result.payment.affiliate_id is None
    assert result.payment.commission_rate is None


async def test_invalid_coupon_creates_no_payment(db, seed, gateway):
    with pytest.raises(ValidationError):
        await OrderService(db, gateway).initiate(seed.student.id, seed.course.id, coupon_codes="EXPIRED")

    assert (await db.scalar(select(func.count(Payment.id)))) == 0


async def test_gateway_failure_leaves_failed_payment(db, seed, gateway, razorpay_client):
    razorpay_client.order.error = RuntimeError("connection reset")

    with pytest.raises(GatewayError) as exc_info:
        await OrderService(db, gateway).initiate(seed.student.id, seed.course.id)

    payment = await db.get(Payment, uuid.UUID(exc_info.value.details["payment_id"]))
    assert payment.status == PaymentStatus.FAILED.value
    assert payment.failure_reason.startswith("Gateway order creation failed")
    assert payment.gateway_order_id is None


async def test_gateway_timeout_leaves_failed_payment(db, seed):
    slow = FakeRazorpayClient()
    slow.order.delay = 0.3
    gateway = PaymentGatewayClient("rzp_test_key", KEY_SECRET, timeout=0.05, client=slow)

    with pytest.raises(GatewayError) as exc_info:
        await OrderService(db, gateway).initiate(seed.student.id, seed.course.id)

    assert exc_info.value.message == "Payment gateway timed out"
    payment = await db.get(Payment, uuid.UUID(exc_info.value.details["payment_id"]))
    assert payment.status == PaymentStatus.FAILED.value


async def test_missing_gateway_fails_paid_order(db, seed):
    with pytest.raises(GatewayError):
        await OrderService(db).initiate(seed.student.id, seed.course.id)

    payments = (await db.execute(select(Payment))).scalars().all()
    assert [p.status for p in payments] == [PaymentStatus.FAILED.value]


async def test_fully_discounted_order_completes_without_gateway(db, seed, gateway, razorpay_client, notifier):
    result = await OrderService(db, gateway, notifier).initiate(
        seed.student.id, seed.small_course.id, coupon_codes="FLAT600"
    )

    assert not result.requires_payment
    assert result.amount_minor == 0
    assert result.confirmation.status == PaymentStatus.COMPLETED.value
    assert result.breakdown.clamped
    assert razorpay_client.order.created == []
    assert notifier.completed == [result.payment.id]

    enrollment = await db.get(Enrollment, result.confirmation.enrollment_id)
    assert enrollment.user_id == seed.student.id
    course = await db.get(Course, seed.small_course.id)
    await db.refresh(course)
    assert course.current_enrollments == 1
