"""Coupon preview schemas."""
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from academy.models.payment import PaymentChannel
from academy.schemas.base import BaseRequestSchema
from academy.schemas.checkout import PriceBreakdownResponse


class ValidateCouponRequest(BaseRequestSchema):
    """Request to validate a coupon against a course."""
    code: str = Field(..., min_length=1, max_length=50)
    course_id: uuid.UUID
    channel: PaymentChannel = PaymentChannel.DOMESTIC


class CouponValidationResponse(BaseModel):
    """Coupon validation response."""
    valid: bool
    code: str
    message: str
    creator_role: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    breakdown: Optional[PriceBreakdownResponse] = None
