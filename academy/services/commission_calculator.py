"""Affiliate commission for a single sale."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from academy.services.pricing_engine import PriceBreakdown, to_money, HUNDRED, ZERO


@dataclass(frozen=True)
class CommissionSnapshot:
    """Rate and amount fixed at the moment of sale."""
    rate: Decimal
    amount: Decimal


def calculate_commission(
    price_after_platform_discount: Decimal,
    commission_rate: Decimal,
) -> Decimal:
    """
    Commission owed on one sale.

    The base excludes the affiliate's own discount, so the discount an
    affiliate hands out never erodes their payout.
    """
    if commission_rate < ZERO:
        raise ValueError("Commission rate cannot be negative")
    return to_money(price_after_platform_discount * commission_rate / HUNDRED)


def commission_for(breakdown: PriceBreakdown, commission_rate: Decimal) -> Optional[CommissionSnapshot]:
    """Snapshot for an order, or None when no affiliate coupon was applied."""
    if not breakdown.has_affiliate_coupon:
        return None
    rate = Decimal(commission_rate or 0)
    return CommissionSnapshot(
        rate=rate,
        amount=calculate_commission(breakdown.price_after_platform_discount, rate),
    )
