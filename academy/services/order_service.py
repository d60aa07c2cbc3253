"""
Order Service - course checkout initiation.

Flow:
1. Resolve course and the price for the payment channel
2. Resolve and validate coupon codes
3. Price the order and snapshot the affiliate commission
4. Issue an invoice number and persist the PENDING payment
5. Create the gateway order; on failure mark the payment FAILED

Steps 1-3 never write. Anything that fails after step 4 leaves a FAILED
payment behind for audit.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from academy.config import settings
from academy.core.exceptions import GatewayError, NotFoundError, ValidationError
from academy.models.course import Course
from academy.models.payment import Payment, PaymentChannel, PaymentCoupon, PaymentStatus
from academy.services.commission_calculator import CommissionSnapshot, commission_for
from academy.services.coupon_service import CouponService, parse_coupon_codes
from academy.services.invoice_sequence_service import InvoiceSequenceService
from academy.services.payment_confirmation_service import (
    ConfirmationResult,
    PaymentConfirmationService,
)
from academy.services.payment_gateway import PaymentGatewayClient, to_minor_units
from academy.services.pricing_engine import PriceBreakdown, calculate_price

logger = logging.getLogger(__name__)


@dataclass
class Quote:
    course: Course
    channel: PaymentChannel
    breakdown: PriceBreakdown
    commission: Optional[CommissionSnapshot]


@dataclass
class OrderResult:
    payment: Payment
    breakdown: PriceBreakdown
    key_id: Optional[str] = None
    confirmation: Optional[ConfirmationResult] = None

    @property
    def requires_payment(self) -> bool:
        return self.confirmation is None

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.payment.final_amount)


class OrderService:
    """Creates PENDING payments and their gateway orders."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: Optional[PaymentGatewayClient] = None,
        notifier=None,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier

    async def quote(
        self,
        course_id: uuid.UUID,
        channel: PaymentChannel = PaymentChannel.DOMESTIC,
        coupon_codes: Union[str, Sequence[str], None] = None,
    ) -> Quote:
        """Price an order without writing anything."""
        course = await self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found", {"course_id": str(course_id)})

        base_price = course.price_for_channel(channel.value)
        if base_price is None or base_price <= 0:
            raise ValidationError(
                f"Course is not available for {channel.currency} payment",
                {"course_id": str(course_id), "channel": channel.value},
            )

        codes = self._codes(coupon_codes)
        lines = await CouponService(self.db).resolve(codes, course.id)

        breakdown = calculate_price(
            base_price,
            lines,
            taxable=channel.is_taxable,
            tax_rate=settings.GST_RATE,
        )
        commission = commission_for(breakdown, course.commission_rate)
        return Quote(course=course, channel=channel, breakdown=breakdown, commission=commission)

    @staticmethod
    def _codes(coupon_codes: Union[str, Sequence[str], None]) -> List[str]:
        if coupon_codes is None or isinstance(coupon_codes, str):
            return parse_coupon_codes(coupon_codes)
        return parse_coupon_codes(",".join(coupon_codes))

    async def initiate(
        self,
        user_id: uuid.UUID,
        course_id: uuid.UUID,
        channel: PaymentChannel = PaymentChannel.DOMESTIC,
        coupon_codes: Union[str, Sequence[str], None] = None,
    ) -> OrderResult:
        """
        Start a checkout.

        Args:
            user_id: Buyer
            course_id: Course being bought
            channel: DOMESTIC (INR, taxed) or FOREX (USD, untaxed)
            coupon_codes: Comma separated string or list of codes

        Returns:
            OrderResult with the persisted payment. For zero-amount orders the
            payment is already COMPLETED and ``confirmation`` is set.

        Raises:
            NotFoundError: Course missing
            ValidationError: Bad price or coupon
            GatewayError: Gateway order creation failed (payment is FAILED)
        """
        quote = await self.quote(course_id, channel, coupon_codes)
        breakdown = quote.breakdown

        invoice_number = await InvoiceSequenceService(self.db).get_next_invoice_number(channel)
        payment = self._build_payment(user_id, quote, invoice_number)
        self.db.add(payment)
        await self.db.commit()

        logger.info(
            f"Created payment {invoice_number} for course {course_id}: "
            f"{channel.currency} {breakdown.final_amount}"
            + (" (discount clamped)" if breakdown.clamped else "")
        )

        if breakdown.final_amount == 0:
            confirmation = await PaymentConfirmationService(
                self.db, self.gateway, self.notifier
            ).complete_free_order(payment.id)
            return OrderResult(payment=payment, breakdown=breakdown, confirmation=confirmation)

        if self.gateway is None:
            await self._fail(payment, "Payment gateway not configured")
            raise GatewayError("Payment gateway not configured", {"payment_id": str(payment.id)})

        try:
            order = await self.gateway.create_order(
                amount=payment.final_amount,
                currency=channel.currency,
                receipt=invoice_number,
                notes=self._notes(payment),
            )
        except GatewayError as e:
            await self._fail(payment, f"Gateway order creation failed: {e.message}")
            e.details["payment_id"] = str(payment.id)
            raise

        payment.gateway_order_id = order.id
        await self.db.commit()

        return OrderResult(payment=payment, breakdown=breakdown, key_id=self.gateway.key_id)

    def _build_payment(self, user_id: uuid.UUID, quote: Quote, invoice_number: str) -> Payment:
        breakdown = quote.breakdown
        commission = quote.commission

        payment = Payment(
            user_id=user_id,
            course_id=quote.course.id,
            invoice_number=invoice_number,
            channel=quote.channel.value,
            currency=quote.channel.currency,
            original_amount=breakdown.base_price,
            platform_discount_amount=breakdown.platform_discount,
            affiliate_discount_amount=breakdown.affiliate_discount,
            discount_amount=breakdown.total_discount,
            price_after_platform_discount=breakdown.price_after_platform_discount,
            subtotal=breakdown.subtotal,
            tax_rate=breakdown.tax_rate,
            tax_amount=breakdown.tax,
            final_amount=breakdown.final_amount,
            discount_clamped=breakdown.clamped,
            affiliate_id=breakdown.affiliate_id if commission else None,
            commission_rate=commission.rate if commission else None,
            commission_amount=commission.amount if commission else None,
            status=PaymentStatus.PENDING.value,
        )
        payment.applied_coupons = [
            PaymentCoupon(
                coupon_id=applied.coupon.coupon_id,
                position=position,
                code=applied.coupon.code,
                creator_role=applied.coupon.creator_role.value,
                discount_type=applied.coupon.discount_type.value,
                discount_value=applied.coupon.discount_value,
                discount_amount=applied.amount,
                clamped=applied.clamped,
            )
            for position, applied in enumerate(breakdown.applied)
        ]
        return payment

    @staticmethod
    def _notes(payment: Payment) -> dict:
        return {
            "payment_id": str(payment.id),
            "course_id": str(payment.course_id),
            "original_amount": str(payment.original_amount),
            "discount_amount": str(payment.discount_amount),
            "tax_amount": str(payment.tax_amount),
            "coupons": ",".join(pc.code for pc in payment.applied_coupons),
        }

    async def _fail(self, payment: Payment, reason: str) -> None:
        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = reason
        await self.db.commit()
        logger.warning(f"Payment {payment.invoice_number} marked FAILED: {reason}")
