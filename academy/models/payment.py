"""
Payment Model

One row per checkout attempt. Created PENDING by the order initiator and
moved to a terminal state (COMPLETED or FAILED) exactly once by the payment
confirmer. Amount, discount, tax and commission columns are a snapshot of
the checkout and are never recomputed.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.database import Base
from academy.db_types import UUIDType, Money


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentChannel(str, Enum):
    """Payment channel. Decides currency, tax and invoice series."""
    DOMESTIC = "DOMESTIC"  # INR, GST applies
    FOREX = "FOREX"  # USD, no GST

    @property
    def currency(self) -> str:
        return "USD" if self is PaymentChannel.FOREX else "INR"

    @property
    def invoice_letter(self) -> str:
        return "F" if self is PaymentChannel.FOREX else "G"

    @property
    def is_taxable(self) -> bool:
        return self is PaymentChannel.DOMESTIC


TERMINAL_STATUSES = frozenset({PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value})


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("final_amount >= 0", name="ck_payment_final_amount_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED')",
            name="ck_payment_status"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("courses.id"),
        nullable=False,
        index=True
    )

    invoice_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        comment="e.g. FT2425G00007"
    )
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="DOMESTIC, FOREX"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Pricing snapshot
    original_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    platform_discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    affiliate_discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    price_after_platform_discount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_clamped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Commission snapshot (taken at checkout)
    affiliate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=True,
        index=True
    )
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    commission_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    commission_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Gateway references
    gateway_order_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        index=True
    )
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True
    )
    gateway_signature: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
        index=True
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Set on completion. No FK: enrollments already reference payments.
    enrollment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

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
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    applied_coupons: Mapped[List["PaymentCoupon"]] = relationship(
        "PaymentCoupon",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PaymentCoupon.position",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Payment(invoice='{self.invoice_number}', status='{self.status}', final={self.final_amount})>"


class PaymentCoupon(Base):
    """Per-coupon discount breakdown of a payment, in application order."""
    __tablename__ = "payment_coupons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("coupons.id"),
        nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    creator_role: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    clamped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
