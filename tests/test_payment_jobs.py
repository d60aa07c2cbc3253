from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from academy.core.exceptions import GatewayError
from academy.jobs.payment_jobs import reconcile_pending_payments
from academy.models import Enrollment, Payment, PaymentStatus
from academy.services.order_service import OrderService
from academy.services.payment_confirmation_service import PaymentConfirmationService


async def pending_payment(session_factory, gateway, seed):
    async with session_factory() as session:
        result = await OrderService(session, gateway).initiate(seed.student.id, seed.course.id)
    return result.payment


def later():
    return datetime.now(timezone.utc) + timedelta(hours=1)


async def test_reconciler_completes_captured_and_expires_the_rest(
    db, session_factory, seed, gateway, razorpay_client, notifier
):
    captured = await pending_payment(session_factory, gateway, seed)
    abandoned = await pending_payment(session_factory, gateway, seed)
    razorpay_client.order.captured[captured.gateway_order_id] = [
        {"id": "pay_failed_try", "status": "failed"},
        {"id": "pay_ok", "status": "captured"},
    ]

    summary = await reconcile_pending_payments(
        gateway, session_factory, notifier=notifier, expiry_minutes=30, now=later()
    )

    assert summary == {"processed": 2, "completed": 1, "failed": 1, "errors": 0}
    assert notifier.completed == [captured.id]

    done = await db.get(Payment, captured.id)
    assert done.status == PaymentStatus.COMPLETED.value
    assert done.gateway_payment_id == "pay_ok"
    expired = await db.get(Payment, abandoned.id)
    assert expired.status == PaymentStatus.FAILED.value
    assert expired.failure_reason == "Payment expired"


async def test_reconciler_skips_recent_payments(db, session_factory, seed, gateway):
    payment = await pending_payment(session_factory, gateway, seed)

    summary = await reconcile_pending_payments(gateway, session_factory, expiry_minutes=30)

    assert summary["processed"] == 0
    assert (await db.get(Payment, payment.id)).status == PaymentStatus.PENDING.value


async def test_reconciler_expires_payment_without_gateway_order(db, session_factory, seed):
    async with session_factory() as session:
        payment = Payment(
            user_id=seed.student.id,
            course_id=seed.course.id,
            invoice_number="FT2425G99999",
            channel="DOMESTIC",
            currency="INR",
            original_amount=10000,
            price_after_platform_discount=10000,
            subtotal=10000,
            final_amount=11800,
        )
        session.add(payment)
        await session.commit()

    summary = await reconcile_pending_payments(None, session_factory, expiry_minutes=30, now=later())

    assert summary["failed"] == 1
    stored = await db.get(Payment, payment.id)
    assert stored.failure_reason == "Gateway order never created"


async def test_reconciler_counts_gateway_errors_and_continues(
    db, session_factory, seed, gateway, razorpay_client, monkeypatch
):
    first = await pending_payment(session_factory, gateway, seed)
    second = await pending_payment(session_factory, gateway, seed)
    razorpay_client.order.captured[second.gateway_order_id] = [{"id": "pay_2", "status": "captured"}]

    original = gateway.get_order_payments

    async def flaky(order_id):
        if order_id == first.gateway_order_id:
            raise GatewayError("Payment gateway request failed")
        return await original(order_id)

    monkeypatch.setattr(gateway, "get_order_payments", flaky)

    summary = await reconcile_pending_payments(gateway, session_factory, expiry_minutes=30, now=later())

    assert summary == {"processed": 2, "completed": 1, "failed": 0, "errors": 1}
    assert (await db.get(Payment, first.id)).status == PaymentStatus.PENDING.value
    assert await db.scalar(select(func.count(Enrollment.id))) == 1


async def test_reconciler_survives_database_errors(db, session_factory, seed, gateway, monkeypatch):
    first = await pending_payment(session_factory, gateway, seed)
    second = await pending_payment(session_factory, gateway, seed)

    original = PaymentConfirmationService.expire

    async def flaky_expire(self, payment_id, reason):
        if payment_id == first.id:
            raise OperationalError("UPDATE payments", {}, Exception("database is locked"))
        return await original(self, payment_id, reason)

    monkeypatch.setattr(PaymentConfirmationService, "expire", flaky_expire)

    summary = await reconcile_pending_payments(gateway, session_factory, expiry_minutes=30, now=later())

    assert summary == {"processed": 2, "completed": 0, "failed": 1, "errors": 1}
    assert (await db.get(Payment, first.id)).status == PaymentStatus.PENDING.value
    assert (await db.get(Payment, second.id)).status == PaymentStatus.FAILED.value

async def test_scheduled_run_swallows_job_errors(monkeypatch):
    from academy.jobs import payment_jobs
    from academy.jobs.scheduler import get_job_status, run_payment_reconciliation

    async def explode(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(payment_jobs, "reconcile_pending_payments", explode)

    await run_payment_reconciliation(gateway=None)

    assert get_job_status() == []
