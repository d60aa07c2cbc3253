"""
Checkout payment endpoints (Razorpay).

Handles:
- Price quote
- Order creation
- Payment verification from the checkout widget
- Webhook events from Razorpay
- Payment status for the buyer
- Saved billing details
"""

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, status
from sqlalchemy import select

from academy.api.deps import DB, CurrentUser, Gateway, Notifier
from academy.core.exceptions import CheckoutError, NotFoundError
from academy.models.payment import Payment
from academy.schemas.checkout import (
    BillingInfoResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentResponse,
    PriceBreakdownResponse,
    QuoteRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookResponse,
)
from academy.services.billing_service import BillingService
from academy.services.order_service import OrderService
from academy.services.payment_confirmation_service import (
    GENERIC_FAILURE_MESSAGE,
    GatewayCallback,
    PaymentConfirmationService,
)
from academy.services.payment_gateway import WebhookEvent

logger = logging.getLogger(__name__)


router = APIRouter(tags=["Payments"])


# ==================== CHECKOUT ====================

@router.post(
    "/quote",
    response_model=PriceBreakdownResponse,
    summary="Price a course with coupons",
)
async def quote_order(data: QuoteRequest, db: DB, current_user: CurrentUser):
    """Full price breakdown without creating anything."""
    quote = await OrderService(db).quote(data.course_id, data.channel, data.coupon_codes)
    return PriceBreakdownResponse.from_breakdown(quote.breakdown, data.channel.currency)


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a Razorpay payment order",
    description="Price the course, persist a PENDING payment and open a Razorpay order."
)
async def create_payment_order(
    data: CreateOrderRequest,
    db: DB,
    current_user: CurrentUser,
    gateway: Gateway,
    notifier: Notifier,
):
    """
    Start checkout.

    Returns the Razorpay order id and key for the checkout widget. A fully
    discounted order comes back already COMPLETED with ``requires_payment``
    set to false.
    """
    user_id = current_user.id
    result = await OrderService(db, gateway, notifier).initiate(
        user_id=user_id,
        course_id=data.course_id,
        channel=data.channel,
        coupon_codes=data.coupon_codes,
    )
    payment = result.payment

    if data.billing_address or data.tax_identifier:
        await BillingService(db).save_billing_details(
            user_id,
            billing_address=data.billing_address,
            tax_identifier=data.tax_identifier,
        )

    return CreateOrderResponse(
        payment_id=payment.id,
        invoice_number=payment.invoice_number,
        status=result.confirmation.status if result.confirmation else payment.status,
        requires_payment=result.requires_payment,
        razorpay_order_id=payment.gateway_order_id,
        key_id=result.key_id,
        amount=result.amount_minor,
        currency=payment.currency,
        enrollment_id=result.confirmation.enrollment_id if result.confirmation else None,
        breakdown=PriceBreakdownResponse.from_breakdown(result.breakdown, payment.currency),
    )


@router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    summary="Verify payment",
    description="Verify the Razorpay signature and complete the enrollment."
)
async def verify_payment(
    data: VerifyPaymentRequest,
    db: DB,
    current_user: CurrentUser,
    gateway: Gateway,
    notifier: Notifier,
):
    """
    Verify payment after the buyer completes checkout.

    Safe to call more than once: a COMPLETED payment returns its original
    enrollment without further writes.
    """
    confirmation = await PaymentConfirmationService(db, gateway, notifier).confirm(
        data.payment_id,
        GatewayCallback(
            gateway_order_id=data.razorpay_order_id,
            gateway_payment_id=data.razorpay_payment_id,
            signature=data.razorpay_signature,
        ),
        user_id=current_user.id,
    )

    return VerifyPaymentResponse(
        success=confirmation.success,
        payment_id=confirmation.payment_id,
        invoice_number=confirmation.invoice_number,
        status=confirmation.status,
        enrollment_id=confirmation.enrollment_id,
        replayed=confirmation.replayed,
        message="Payment verified successfully" if confirmation.success else GENERIC_FAILURE_MESSAGE,
    )


@router.get("/billing-info", response_model=BillingInfoResponse)
async def get_billing_info(db: DB, current_user: CurrentUser):
    """Saved GST number and default address for pre-filling checkout."""
    return await BillingService(db).get_billing_info(current_user)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Payment status for its buyer."""
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id, Payment.user_id == current_user.id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found", {"payment_id": str(payment_id)})
    return PaymentResponse.model_validate(payment)


# ==================== WEBHOOKS ====================

@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Razorpay webhook handler",
)
async def razorpay_webhook(
    request: Request,
    db: DB,
    gateway: Gateway,
    notifier: Notifier,
    x_razorpay_signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
):
    """
    Handle Razorpay webhook events.

    Events handled:
    - payment.captured / order.paid: complete the payment
    - payment.failed: mark the payment FAILED

    Security:
    - Verifies the body signature using RAZORPAY_WEBHOOK_SECRET
    - Idempotent: duplicate events are replays
    """
    body = await request.body()

    if not gateway.verify_webhook_signature(body, x_razorpay_signature or ""):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    event = payload.get("event")
    entity = payload.get("payload", {}).get("payment", {}).get("entity", {})
    gateway_order_id = entity.get("order_id")
    gateway_payment_id = entity.get("id")

    logger.info(f"Received Razorpay webhook: {event}")

    if event not in (WebhookEvent.PAYMENT_CAPTURED, WebhookEvent.ORDER_PAID, WebhookEvent.PAYMENT_FAILED):
        logger.info(f"Unhandled webhook event: {event}")
        return WebhookResponse(status="ignored", event=event)

    if not gateway_order_id or not gateway_payment_id:
        logger.warning(f"Webhook {event} without payment entity")
        return WebhookResponse(status="ignored", event=event)

    confirmer = PaymentConfirmationService(db, gateway, notifier)
    try:
        if event == WebhookEvent.PAYMENT_FAILED:
            reason = entity.get("error_description") or "Payment failed at gateway"
            await confirmer.mark_failed(gateway_order_id, reason)
        else:
            await confirmer.confirm_captured(gateway_order_id, gateway_payment_id)
    except NotFoundError:
        logger.warning(f"Webhook {event} for unknown order {gateway_order_id}")
        return WebhookResponse(status="ignored", event=event)
    except CheckoutError as e:
        # Payment is FAILED and recorded; a retry would change nothing
        logger.error(f"Error processing webhook {event}: {e.message}")
        return WebhookResponse(status="error", event=event)

    return WebhookResponse(status="ok", event=event)
