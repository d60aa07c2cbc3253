"""
Payment Background Jobs

Resolves checkout payments that never received a confirmation callback.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.config import settings
from academy.core.exceptions import CheckoutError
from academy.models.payment import Payment, PaymentStatus
from academy.services.payment_confirmation_service import PaymentConfirmationService
from academy.services.payment_gateway import PaymentGatewayClient

logger = logging.getLogger(__name__)

BATCH_SIZE = 100


async def reconcile_pending_payments(
    gateway: Optional[PaymentGatewayClient],
    session_factory: Optional[Callable[[], AsyncSession]] = None,
    notifier=None,
    expiry_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Settle stale PENDING payments against the gateway.

    This job runs every PAYMENT_RECONCILE_INTERVAL_MINUTES to:
    1. Find PENDING payments older than PENDING_PAYMENT_EXPIRY_MINUTES
    2. Ask Razorpay for the payments made against each order
    3. Complete the ones Razorpay captured, fail the rest

    Each payment gets its own session; one failure does not stop the batch.
    """
    if session_factory is None:
        from academy.database import async_session_factory
        session_factory = async_session_factory

    expiry = expiry_minutes if expiry_minutes is not None else settings.PENDING_PAYMENT_EXPIRY_MINUTES
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=expiry)
    summary = {"processed": 0, "completed": 0, "failed": 0, "errors": 0}

    logger.info("Starting stale payment reconciliation...")

    async with session_factory() as session:
        result = await session.execute(
            select(Payment.id, Payment.invoice_number, Payment.gateway_order_id)
            .where(
                Payment.status == PaymentStatus.PENDING.value,
                Payment.created_at < cutoff,
            )
            .order_by(Payment.created_at.asc())
            .limit(BATCH_SIZE)
        )
        stale = result.all()

    for payment_id, invoice_number, gateway_order_id in stale:
        summary["processed"] += 1
        try:
            async with session_factory() as session:
                confirmer = PaymentConfirmationService(session, gateway, notifier)

                if not gateway_order_id:
                    await confirmer.expire(payment_id, "Gateway order never created")
                    summary["failed"] += 1
                    continue

                captured = None
                if gateway is not None:
                    items = await gateway.get_order_payments(gateway_order_id)
                    captured = next((p for p in items if p.get("status") == "captured"), None)

                if captured:
                    await confirmer.confirm_captured(gateway_order_id, captured["id"])
                    summary["completed"] += 1
                else:
                    await confirmer.expire(payment_id, "Payment expired")
                    summary["failed"] += 1

        except CheckoutError as e:
            summary["errors"] += 1
            logger.error(f"Reconciliation of payment {invoice_number} failed: {e.message}")
        except Exception as e:
            summary["errors"] += 1
            logger.error(f"Reconciliation of payment {invoice_number} failed: {e}")

    logger.info(
        f"Payment reconciliation done: {summary['processed']} processed, "
        f"{summary['completed']} completed, {summary['failed']} failed, {summary['errors']} errors"
    )
    return summary
