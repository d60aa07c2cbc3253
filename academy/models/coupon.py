"""
Coupon Model for course checkout

Coupons are created either by the platform operator or by an affiliate.
The creator role decides where the coupon sits in the discount stack:
platform coupons always apply before affiliate coupons.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Text, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.database import Base
from academy.db_types import UUIDType, Money


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "PERCENTAGE"  # e.g., 10% off
    FIXED = "FIXED"  # e.g., ₹500 off


class CreatorRole(str, Enum):
    """Who issued the coupon."""
    PLATFORM = "PLATFORM"
    AFFILIATE = "AFFILIATE"


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "creator_role IN ('PLATFORM', 'AFFILIATE')",
            name="ck_coupon_creator_role"
        ),
        CheckConstraint(
            "discount_type IN ('PERCENTAGE', 'FIXED')",
            name="ck_coupon_discount_type"
        ),
        CheckConstraint(
            "(creator_role = 'AFFILIATE') = (affiliate_id IS NOT NULL)",
            name="ck_coupon_affiliate_owner"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Coupon Code
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique coupon code (stored upper case)"
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Discount Type & Value
    discount_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DiscountType.PERCENTAGE.value,
        comment="PERCENTAGE, FIXED"
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Percentage points or fixed amount"
    )

    # Creator
    creator_role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CreatorRole.PLATFORM.value,
        comment="PLATFORM, AFFILIATE"
    )
    affiliate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=True,
        index=True,
        comment="Owning affiliate for AFFILIATE coupons"
    )

    # Usage Limits
    max_usage_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Total times this coupon can be used (null = unlimited)"
    )
    used_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Incremented once per completed payment"
    )

    # Validity Period
    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiry date (null = never expires)"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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

    course_scope: Mapped[List["CouponCourse"]] = relationship(
        "CouponCourse",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def scoped_course_ids(self) -> set[uuid.UUID]:
        return {row.course_id for row in self.course_scope}

    @property
    def is_exhausted(self) -> bool:
        return self.max_usage_count is not None and self.used_count >= self.max_usage_count

    def __repr__(self) -> str:
        return f"<Coupon(code='{self.code}', role='{self.creator_role}', value={self.discount_value})>"


class CouponCourse(Base):
    """Restricts a coupon to specific courses. No rows = valid for every course."""
    __tablename__ = "coupon_courses"
    __table_args__ = (
        UniqueConstraint("coupon_id", "course_id", name="uq_coupon_course"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("coupons.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False
    )
