"""
Coupon resolution for checkout.

Turns the buyer's free-text coupon field into validated CouponLine objects
for the pricing engine, and powers the single-code preview on the checkout
page.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.config import settings
from academy.core.exceptions import NotFoundError, ValidationError
from academy.models.coupon import Coupon, CreatorRole, DiscountType
from academy.models.course import Course
from academy.models.payment import PaymentChannel
from academy.services.pricing_engine import CouponLine, PriceBreakdown, calculate_price

logger = logging.getLogger(__name__)


def parse_coupon_codes(raw: Optional[str]) -> List[str]:
    """
    Split a comma separated coupon field.

    "save10, aff5,,SAVE10" -> ["SAVE10", "AFF5"]
    """
    if not raw:
        return []
    codes = []
    for part in raw.split(","):
        code = part.strip().upper()
        if code and code not in codes:
            codes.append(code)
    return codes


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_coupon_line(coupon: Coupon) -> CouponLine:
    return CouponLine(
        coupon_id=coupon.id,
        code=coupon.code,
        discount_type=DiscountType(coupon.discount_type),
        discount_value=coupon.discount_value,
        creator_role=CreatorRole(coupon.creator_role),
        affiliate_id=coupon.affiliate_id,
    )


def coupon_problem(coupon: Coupon, course_id: uuid.UUID, now: Optional[datetime] = None) -> Optional[str]:
    """Why a coupon cannot be used on this course right now, or None."""
    now = now or datetime.now(timezone.utc)

    if not coupon.is_active:
        return "This coupon is no longer active"
    if _as_utc(coupon.valid_from) and now < _as_utc(coupon.valid_from):
        return "This coupon is not yet active"
    if coupon.valid_until and now > _as_utc(coupon.valid_until):
        return "This coupon has expired"
    if coupon.is_exhausted:
        return "This coupon has reached its usage limit"
    scope = coupon.scoped_course_ids
    if scope and course_id not in scope:
        return "This coupon is not applicable to this course"
    return None


@dataclass
class CouponCheck:
    """Result of a single-code preview."""
    valid: bool
    code: str
    message: str
    coupon: Optional[Coupon] = None
    breakdown: Optional[PriceBreakdown] = None


class CouponService:
    """Loads and validates coupons against a course."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_codes(self, codes: List[str]) -> dict[str, Coupon]:
        if not codes:
            return {}
        result = await self.db.execute(select(Coupon).where(Coupon.code.in_(codes)))
        return {c.code: c for c in result.scalars().all()}

    async def resolve(self, codes: List[str], course_id: uuid.UUID) -> List[CouponLine]:
        """
        Validate every code for the course, preserving the buyer's order.

        Raises:
            ValidationError: Unknown code, inactive, outside its validity
                window, exhausted, out of scope, or affiliate coupons from
                more than one affiliate
        """
        found = await self.get_by_codes(codes)
        now = datetime.now(timezone.utc)

        lines = []
        for code in codes:
            coupon = found.get(code)
            if coupon is None:
                raise ValidationError(f"Invalid coupon code: {code}", {"code": code})
            problem = coupon_problem(coupon, course_id, now)
            if problem:
                raise ValidationError(f"{problem}: {code}", {"code": code})
            lines.append(to_coupon_line(coupon))

        affiliates = {l.affiliate_id for l in lines if l.creator_role is CreatorRole.AFFILIATE}
        if len(affiliates) > 1:
            raise ValidationError(
                "Coupons from more than one affiliate cannot be combined",
                {"codes": [l.code for l in lines if l.creator_role is CreatorRole.AFFILIATE]},
            )
        return lines

    async def validate_code(
        self,
        code: str,
        course_id: uuid.UUID,
        channel: PaymentChannel = PaymentChannel.DOMESTIC,
    ) -> CouponCheck:
        """Preview one code against a course. Never raises for a bad coupon."""
        code = code.strip().upper()

        course = await self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found", {"course_id": str(course_id)})

        coupon = (await self.get_by_codes([code])).get(code)
        if coupon is None:
            return CouponCheck(valid=False, code=code, message="Invalid coupon code")

        problem = coupon_problem(coupon, course_id)
        if problem:
            return CouponCheck(valid=False, code=code, message=problem, coupon=coupon)

        price = course.price_for_channel(channel.value)
        if price is None or price <= 0:
            return CouponCheck(
                valid=False,
                code=code,
                message=f"Course is not sold in {channel.currency}",
                coupon=coupon,
            )

        breakdown = calculate_price(
            price,
            [to_coupon_line(coupon)],
            taxable=channel.is_taxable,
            tax_rate=settings.GST_RATE,
        )
        return CouponCheck(
            valid=True,
            code=code,
            message=f"Coupon applied! You save {channel.currency} {breakdown.total_discount}",
            coupon=coupon,
            breakdown=breakdown,
        )
