"""Checkout schemas: quote, order creation, verification and billing details."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field, model_validator

from academy.models.payment import PaymentChannel
from academy.schemas.base import BaseRequestSchema, BaseResponseSchema

if TYPE_CHECKING:
    from academy.services.pricing_engine import PriceBreakdown

GSTIN_PATTERN = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$"


# ==================== Billing Details ====================

class BillingAddress(BaseRequestSchema):
    """Billing address printed on the invoice."""
    address_line1: str = Field(..., min_length=1, max_length=500)
    address_line2: str = Field("", max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pin_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field("India", max_length=100)


class PrincipalAddress(BaseRequestSchema):
    """Principal place of business as registered against a GSTIN."""
    building_number: Optional[str] = Field(None, max_length=100)
    floor: Optional[str] = Field(None, max_length=100)
    building_name: Optional[str] = Field(None, max_length=200)
    street: Optional[str] = Field(None, max_length=200)
    locality: Optional[str] = Field(None, max_length=200)
    district: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pin_code: Optional[str] = Field(None, max_length=20)
    full_address: Optional[str] = Field(None, max_length=500)

    def address_line(self) -> str:
        if self.full_address:
            return self.full_address
        parts = [
            self.floor,
            self.building_number if self.building_number and self.building_number != "0" else None,
            self.building_name,
            self.street,
            self.locality,
        ]
        return ", ".join(p for p in parts if p)


class TaxIdentifier(BaseRequestSchema):
    """A verified GST registration supplied at checkout."""
    gstin: str = Field(..., pattern=GSTIN_PATTERN, description="15 character GSTIN")
    legal_name: Optional[str] = Field(None, max_length=300)
    trade_name: Optional[str] = Field(None, max_length=300)
    principal_address: Optional[PrincipalAddress] = None

    @model_validator(mode="before")
    @classmethod
    def upper_case_gstin(cls, data):
        if isinstance(data, dict) and isinstance(data.get("gstin"), str):
            data = {**data, "gstin": data["gstin"].strip().upper()}
        return data


# ==================== Requests ====================

class QuoteRequest(BaseRequestSchema):
    """Price preview for a course."""
    course_id: uuid.UUID
    channel: PaymentChannel = PaymentChannel.DOMESTIC
    coupon_codes: Optional[str] = Field(
        None,
        max_length=500,
        description="Comma separated coupon codes, e.g. 'SAVE10,AFF5'"
    )


class CreateOrderRequest(QuoteRequest):
    """Start checkout for a course."""
    billing_address: Optional[BillingAddress] = None
    tax_identifier: Optional[TaxIdentifier] = None


class VerifyPaymentRequest(BaseRequestSchema):
    """Payload returned by the checkout widget."""
    payment_id: uuid.UUID = Field(..., description="Internal payment ID")
    razorpay_order_id: str = Field(..., min_length=1, description="Razorpay order ID")
    razorpay_payment_id: str = Field(..., min_length=1, description="Razorpay payment ID")
    razorpay_signature: str = Field(..., min_length=1, description="Razorpay signature for verification")


# ==================== Responses ====================

class AppliedCouponResponse(BaseModel):
    code: str
    creator_role: str
    discount_type: str
    discount_value: Decimal
    discount_amount: Decimal
    clamped: bool = False


class PriceBreakdownResponse(BaseModel):
    """Every intermediate amount of a checkout price."""
    currency: str
    original_amount: Decimal
    platform_discount: Decimal
    price_after_platform_discount: Decimal
    affiliate_discount: Decimal
    total_discount: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    final_amount: Decimal
    discount_clamped: bool = False
    coupons: List[AppliedCouponResponse] = []

    @classmethod
    def from_breakdown(cls, breakdown: "PriceBreakdown", currency: str) -> "PriceBreakdownResponse":
        return cls(
            currency=currency,
            original_amount=breakdown.base_price,
            platform_discount=breakdown.platform_discount,
            price_after_platform_discount=breakdown.price_after_platform_discount,
            affiliate_discount=breakdown.affiliate_discount,
            total_discount=breakdown.total_discount,
            subtotal=breakdown.subtotal,
            tax_rate=breakdown.tax_rate,
            tax_amount=breakdown.tax,
            final_amount=breakdown.final_amount,
            discount_clamped=breakdown.clamped,
            coupons=[
                AppliedCouponResponse(
                    code=a.coupon.code,
                    creator_role=a.coupon.creator_role.value,
                    discount_type=a.coupon.discount_type.value,
                    discount_value=a.coupon.discount_value,
                    discount_amount=a.amount,
                    clamped=a.clamped,
                )
                for a in breakdown.applied
            ],
        )


class CreateOrderResponse(BaseModel):
    """What the frontend needs to open the Razorpay checkout."""
    payment_id: uuid.UUID
    invoice_number: str
    status: str
    requires_payment: bool
    razorpay_order_id: Optional[str] = None
    key_id: Optional[str] = None
    amount: int = Field(..., description="Amount in paise / cents")
    currency: str
    enrollment_id: Optional[uuid.UUID] = None
    breakdown: PriceBreakdownResponse


class VerifyPaymentResponse(BaseModel):
    success: bool
    payment_id: uuid.UUID
    invoice_number: str
    status: str
    enrollment_id: Optional[uuid.UUID] = None
    replayed: bool = False
    message: str


class PaymentCouponResponse(BaseResponseSchema):
    code: str
    creator_role: str
    discount_type: str
    discount_value: Decimal
    discount_amount: Decimal
    clamped: bool


class PaymentResponse(BaseResponseSchema):
    """Persisted payment as shown to its buyer."""
    id: uuid.UUID
    invoice_number: str
    course_id: uuid.UUID
    channel: str
    currency: str
    original_amount: Decimal
    platform_discount_amount: Decimal
    affiliate_discount_amount: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    final_amount: Decimal
    discount_clamped: bool
    status: str
    failure_reason: Optional[str] = None
    gateway_order_id: Optional[str] = None
    enrollment_id: Optional[uuid.UUID] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    applied_coupons: List[PaymentCouponResponse] = []


class BillingInfoResponse(BaseModel):
    """Saved billing details for pre-filling checkout."""
    gst_number: Optional[str] = None
    is_gst_verified: bool = False
    address: Optional[BillingAddress] = None


class WebhookResponse(BaseModel):
    status: str
    event: Optional[str] = None
