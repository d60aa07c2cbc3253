"""Pydantic schemas for the affiliate commission ledger."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from academy.schemas.base import BaseRequestSchema, BaseResponseSchema


class CommissionResponse(BaseResponseSchema):
    """Response schema for a commission row."""
    id: UUID
    affiliate_id: UUID
    payment_id: UUID
    course_id: UUID
    student_id: UUID
    sale_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    status: str
    payout_id: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class CommissionListResponse(BaseModel):
    items: List[CommissionResponse]
    total: int
    total_amount: Decimal = Decimal("0")
    skip: int = 0
    limit: int = 50


class AffiliateCommissionStats(BaseModel):
    """Per-affiliate totals."""
    affiliate_id: UUID
    affiliate_name: Optional[str] = None
    pending_count: int = 0
    pending_amount: Decimal = Decimal("0")
    paid_count: int = 0
    paid_amount: Decimal = Decimal("0")
    total_sales: Decimal = Decimal("0")


class BulkPayoutRequest(BaseRequestSchema):
    """Settle every PENDING commission of one affiliate."""
    affiliate_id: UUID
    payment_method: str = Field("Bank Transfer", max_length=50)
    transaction_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PayoutResponse(BaseResponseSchema):
    id: UUID
    affiliate_id: UUID
    amount: Decimal
    commission_count: int
    status: str
    payment_method: str
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None
    processed_at: datetime
