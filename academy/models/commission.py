"""Affiliate commission ledger and payouts.

Supports:
- One commission row per completed payment that used an affiliate coupon
- Rate and amount captured at sale time (never recomputed)
- Bulk payouts that settle all pending commissions of an affiliate
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from academy.database import Base
from academy.db_types import UUIDType, Money


class CommissionStatus(str, Enum):
    """Commission transaction status."""
    PENDING = "PENDING"  # Earned, not yet settled
    PAID = "PAID"  # Settled through a payout


class PayoutStatus(str, Enum):
    """Payout batch status."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Commission(Base):
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_commission_payment"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("payments.id"),
        nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("courses.id"),
        nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False
    )

    sale_amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Final amount paid by the student"
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Course commission percentage captured at sale time"
    )
    commission_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True
    )
    payout_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("payouts.id"),
        nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Commission(affiliate={self.affiliate_id}, amount={self.commission_amount}, status='{self.status}')>"


class Payout(Base):
    """Settlement of one or more commissions to an affiliate."""
    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    commission_count: Mapped[int] = mapped_column(nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PayoutStatus.COMPLETED.value
    )
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False, default="Bank Transfer")
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
