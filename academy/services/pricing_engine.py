"""
Pricing Engine for course checkout.

This module handles:
1. Partitioning coupons into platform and affiliate groups
2. Platform discounts against the original base price
3. Affiliate discounts against the price after platform discounts
4. Flat GST on the discounted subtotal for taxable channels
5. Commission base (price after platform discount)

Everything here is pure: no database access, no I/O.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence
import uuid

from academy.models.coupon import CreatorRole, DiscountType


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to paise/cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CouponLine:
    """A coupon that has already been resolved and validated."""
    coupon_id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    creator_role: CreatorRole
    affiliate_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class AppliedDiscount:
    """Outcome of one coupon in the stack."""
    coupon: CouponLine
    base: Decimal  # Amount the coupon was computed against
    amount: Decimal
    clamped: bool


@dataclass
class PriceBreakdown:
    base_price: Decimal
    platform_discount: Decimal = ZERO
    price_after_platform_discount: Decimal = ZERO
    affiliate_discount: Decimal = ZERO
    subtotal: Decimal = ZERO
    tax_rate: Decimal = ZERO
    tax: Decimal = ZERO
    final_amount: Decimal = ZERO
    applied: List[AppliedDiscount] = field(default_factory=list)

    @property
    def total_discount(self) -> Decimal:
        return self.platform_discount + self.affiliate_discount

    @property
    def clamped(self) -> bool:
        """True when any coupon asked for more than was left to discount."""
        return any(a.clamped for a in self.applied)

    @property
    def has_affiliate_coupon(self) -> bool:
        return any(a.coupon.creator_role is CreatorRole.AFFILIATE for a in self.applied)

    @property
    def affiliate_id(self) -> Optional[uuid.UUID]:
        for a in self.applied:
            if a.coupon.creator_role is CreatorRole.AFFILIATE:
                return a.coupon.affiliate_id
        return None


def order_coupons(coupons: Sequence[CouponLine]) -> List[CouponLine]:
    """Platform coupons first, then affiliate coupons; input order kept within each group."""
    platform = [c for c in coupons if c.creator_role is CreatorRole.PLATFORM]
    affiliate = [c for c in coupons if c.creator_role is CreatorRole.AFFILIATE]
    return platform + affiliate


def _discount_for(coupon: CouponLine, remaining: Decimal) -> AppliedDiscount:
    if coupon.discount_type is DiscountType.PERCENTAGE:
        requested = to_money(remaining * coupon.discount_value / HUNDRED)
    else:
        requested = to_money(coupon.discount_value)

    if requested < ZERO:
        requested = ZERO

    amount = min(requested, remaining)
    return AppliedDiscount(
        coupon=coupon,
        base=remaining,
        amount=amount,
        clamped=requested > remaining,
    )


def _apply_group(coupons: Sequence[CouponLine], group_base: Decimal) -> List[AppliedDiscount]:
    """Stack coupons of one group against a progressively discounted base."""
    applied = []
    remaining = group_base
    for coupon in coupons:
        result = _discount_for(coupon, remaining)
        applied.append(result)
        remaining -= result.amount
    return applied


def calculate_price(
    base_price: Decimal,
    coupons: Sequence[CouponLine] = (),
    taxable: bool = True,
    tax_rate: Decimal = Decimal("0.18"),
) -> PriceBreakdown:
    """
    Compute the full price breakdown for one course purchase.

    Args:
        base_price: Course price for the payment channel
        coupons: Resolved coupons, in the order the buyer supplied them
        taxable: Whether the channel charges GST
        tax_rate: Flat rate as a fraction (0.18 = 18%)

    Returns:
        PriceBreakdown with every intermediate amount

    Raises:
        ValueError: If base_price is negative
    """
    base_price = to_money(base_price)
    if base_price < ZERO:
        raise ValueError("Base price cannot be negative")

    ordered = order_coupons(coupons)
    platform_coupons = [c for c in ordered if c.creator_role is CreatorRole.PLATFORM]
    affiliate_coupons = [c for c in ordered if c.creator_role is CreatorRole.AFFILIATE]

    breakdown = PriceBreakdown(base_price=base_price)

    # Platform discounts against the original base price
    platform_applied = _apply_group(platform_coupons, base_price)
    breakdown.platform_discount = sum((a.amount for a in platform_applied), ZERO)
    breakdown.price_after_platform_discount = base_price - breakdown.platform_discount

    # Affiliate discounts against what the platform left
    affiliate_applied = _apply_group(affiliate_coupons, breakdown.price_after_platform_discount)
    breakdown.affiliate_discount = sum((a.amount for a in affiliate_applied), ZERO)

    breakdown.applied = platform_applied + affiliate_applied
    breakdown.subtotal = max(base_price - breakdown.total_discount, ZERO)

    if taxable:
        breakdown.tax_rate = tax_rate
        breakdown.tax = to_money(breakdown.subtotal * tax_rate)

    breakdown.final_amount = breakdown.subtotal + breakdown.tax
    return breakdown
