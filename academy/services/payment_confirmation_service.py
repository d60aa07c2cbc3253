"""
Payment Confirmation Service

Moves a PENDING payment to a terminal state exactly once:

    PENDING --(valid signature / captured webhook)--> COMPLETED
    PENDING --(bad signature / completion failure / expiry)--> FAILED

Completion writes (payment status, enrollment, enrollment link, course
counter, coupon usage counters, commission row) are one transaction. The
checkout callback, the gateway webhook and the reconciler job all end up in
``_complete``; whichever arrives first wins and the others get a replay.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.exceptions import NotFoundError, PaymentProcessingError, SecurityError
from academy.models.commission import Commission, CommissionStatus
from academy.models.coupon import Coupon
from academy.models.course import Course, Enrollment, EnrollmentStatus
from academy.models.payment import Payment, PaymentStatus
from academy.services.payment_gateway import PaymentGatewayClient

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Payment could not be verified"


@dataclass(frozen=True)
class GatewayCallback:
    """What the checkout widget hands back after the buyer pays."""
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


@dataclass(frozen=True)
class ConfirmationResult:
    payment_id: uuid.UUID
    status: str
    invoice_number: str
    enrollment_id: Optional[uuid.UUID] = None
    commission_id: Optional[uuid.UUID] = None
    replayed: bool = False
    failure_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value


class PaymentConfirmationService:
    """Owns every write that finalizes a payment."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: Optional[PaymentGatewayClient] = None,
        notifier=None,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier

    # ==================== Loading ====================

    async def _load(self, payment_id: uuid.UUID, lock: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _load_by_order(self, gateway_order_id: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.gateway_order_id == gateway_order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _result(self, payment: Payment, replayed: bool = False) -> ConfirmationResult:
        commission_id = None
        if payment.status == PaymentStatus.COMPLETED.value and payment.affiliate_id:
            commission_id = await self.db.scalar(
                select(Commission.id).where(Commission.payment_id == payment.id)
            )
        return ConfirmationResult(
            payment_id=payment.id,
            status=payment.status,
            invoice_number=payment.invoice_number,
            enrollment_id=payment.enrollment_id,
            commission_id=commission_id,
            replayed=replayed,
            failure_reason=payment.failure_reason,
        )

    # ==================== Entry points ====================

    async def confirm(
        self,
        payment_id: uuid.UUID,
        callback: GatewayCallback,
        user_id: Optional[uuid.UUID] = None,
    ) -> ConfirmationResult:
        """
        Handle the checkout confirmation callback.

        Args:
            payment_id: Our payment id
            callback: Gateway references and signature from the widget
            user_id: Buyer making the call; other users' payments are NOT_FOUND

        Raises:
            NotFoundError: Unknown payment, or not the caller's
            SecurityError: Signature mismatch (payment is now FAILED)
            PaymentProcessingError: Completion writes failed (payment is now FAILED)
        """
        payment = await self._load(payment_id, lock=True)
        if payment is None or (user_id is not None and payment.user_id != user_id):
            raise NotFoundError("Payment not found", {"payment_id": str(payment_id)})

        if payment.status == PaymentStatus.COMPLETED.value:
            logger.info(f"Replayed confirmation for payment {payment.invoice_number}")
            return await self._result(payment, replayed=True)

        if payment.status == PaymentStatus.FAILED.value:
            return await self._result(payment)

        if not self._signature_ok(payment, callback):
            await self._fail(payment, "Signature verification failed")
            logger.warning(
                f"Signature mismatch for payment {payment.invoice_number} "
                f"(gateway payment {callback.gateway_payment_id})"
            )
            raise SecurityError(GENERIC_FAILURE_MESSAGE, {"payment_id": str(payment_id)})

        return await self._complete(payment, callback.gateway_payment_id, callback.signature)

    async def confirm_captured(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
    ) -> ConfirmationResult:
        """Complete a payment the gateway reports as captured (webhook, reconciler)."""
        payment = await self._load_by_order(gateway_order_id)
        if payment is None:
            raise NotFoundError("Payment not found", {"gateway_order_id": gateway_order_id})

        if payment.status == PaymentStatus.COMPLETED.value:
            return await self._result(payment, replayed=True)
        if payment.status == PaymentStatus.FAILED.value:
            logger.warning(
                f"Gateway captured {gateway_payment_id} for FAILED payment "
                f"{payment.invoice_number}; needs manual reconciliation"
            )
            return await self._result(payment)

        return await self._complete(payment, gateway_payment_id, None)

    async def complete_free_order(self, payment_id: uuid.UUID) -> ConfirmationResult:
        """Complete a zero-amount order that never went to the gateway."""
        payment = await self._load(payment_id, lock=True)
        if payment is None:
            raise NotFoundError("Payment not found", {"payment_id": str(payment_id)})
        if payment.is_terminal:
            return await self._result(payment, replayed=payment.status == PaymentStatus.COMPLETED.value)
        if payment.final_amount != 0:
            raise PaymentProcessingError("Only zero-amount orders complete without the gateway")
        return await self._complete(payment, None, None)

    async def mark_failed(self, gateway_order_id: str, reason: str) -> Optional[ConfirmationResult]:
        """Fail a PENDING payment by gateway order id. Terminal payments are left alone."""
        payment = await self._load_by_order(gateway_order_id)
        if payment is None:
            logger.warning(f"No payment for gateway order {gateway_order_id}")
            return None
        if payment.status == PaymentStatus.PENDING.value:
            await self._fail(payment, reason)
        return await self._result(payment)

    async def expire(self, payment_id: uuid.UUID, reason: str) -> ConfirmationResult:
        """Fail a stale PENDING payment by id."""
        payment = await self._load(payment_id, lock=True)
        if payment is None:
            raise NotFoundError("Payment not found", {"payment_id": str(payment_id)})
        if payment.status == PaymentStatus.PENDING.value:
            await self._fail(payment, reason)
        return await self._result(payment)

    # ==================== Internals ====================

    def _signature_ok(self, payment: Payment, callback: GatewayCallback) -> bool:
        if not payment.gateway_order_id or self.gateway is None:
            return False
        # Signed over the order id we stored, not the one the caller sent
        return self.gateway.verify_payment_signature(
            payment.gateway_order_id,
            callback.gateway_payment_id,
            callback.signature,
        )

    async def _fail(self, payment: Payment, reason: str) -> None:
        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = reason
        await self.db.commit()
        logger.info(f"Payment {payment.invoice_number} marked FAILED: {reason}")

    async def _complete(
        self,
        payment: Payment,
        gateway_payment_id: Optional[str],
        signature: Optional[str],
    ) -> ConfirmationResult:
        payment_id = payment.id
        invoice_number = payment.invoice_number

        try:
            # (a) Payment status
            payment.status = PaymentStatus.COMPLETED.value
            payment.gateway_payment_id = gateway_payment_id
            payment.gateway_signature = signature
            payment.completed_at = datetime.now(timezone.utc)

            # (b) Enrollment
            enrollment = Enrollment(
                user_id=payment.user_id,
                course_id=payment.course_id,
                payment_id=payment.id,
                status=EnrollmentStatus.ACTIVE.value,
            )
            self.db.add(enrollment)
            await self.db.flush()

            # (c) Link back
            payment.enrollment_id = enrollment.id

            await self.db.execute(
                update(Course)
                .where(Course.id == payment.course_id)
                .values(current_enrollments=Course.current_enrollments + 1)
            )

            # (d) Coupon usage
            coupon_ids = [pc.coupon_id for pc in payment.applied_coupons]
            if coupon_ids:
                await self.db.execute(
                    update(Coupon)
                    .where(Coupon.id.in_(coupon_ids))
                    .values(used_count=Coupon.used_count + 1)
                )

            # (e) Commission from the checkout snapshot
            commission = None
            if payment.affiliate_id is not None:
                commission = Commission(
                    affiliate_id=payment.affiliate_id,
                    payment_id=payment.id,
                    course_id=payment.course_id,
                    student_id=payment.user_id,
                    sale_amount=payment.final_amount,
                    commission_rate=payment.commission_rate,
                    commission_amount=payment.commission_amount,
                    status=CommissionStatus.PENDING.value,
                )
                self.db.add(commission)
                await self.db.flush()

            await self.db.commit()

        except IntegrityError as e:
            await self.db.rollback()
            return await self._resolve_conflict(payment_id, invoice_number, e)

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Completion of payment {invoice_number} rolled back: {e}")
            await self._fail_after_rollback(payment_id, f"Completion failed: {e.__class__.__name__}")
            raise PaymentProcessingError(GENERIC_FAILURE_MESSAGE, {"payment_id": str(payment_id)})

        logger.info(
            f"Payment {invoice_number} COMPLETED, enrollment {enrollment.id}"
            + (f", commission {commission.commission_amount}" if commission else "")
        )

        if self.notifier is not None:
            self.notifier.payment_completed(payment_id)

        return ConfirmationResult(
            payment_id=payment_id,
            status=PaymentStatus.COMPLETED.value,
            invoice_number=invoice_number,
            enrollment_id=enrollment.id,
            commission_id=commission.id if commission else None,
        )

    async def _resolve_conflict(
        self,
        payment_id: uuid.UUID,
        invoice_number: str,
        error: IntegrityError,
    ) -> ConfirmationResult:
        """A unique constraint fired; another confirmation may have won the race."""
        payment = await self._load(payment_id)
        if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
            logger.info(f"Concurrent confirmation already completed payment {invoice_number}")
            return await self._result(payment, replayed=True)

        logger.error(f"Completion of payment {invoice_number} hit a constraint: {error.orig}")
        await self._fail_after_rollback(payment_id, "Completion failed: IntegrityError")
        raise PaymentProcessingError(GENERIC_FAILURE_MESSAGE, {"payment_id": str(payment_id)})

    async def _fail_after_rollback(self, payment_id: uuid.UUID, reason: str) -> None:
        payment = await self._load(payment_id, lock=True)
        if payment is not None and payment.status == PaymentStatus.PENDING.value:
            await self._fail(payment, reason)
