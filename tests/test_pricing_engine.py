import uuid
from decimal import Decimal

import pytest

from academy.models.coupon import CreatorRole, DiscountType
from academy.services.commission_calculator import calculate_commission, commission_for
from academy.services.pricing_engine import CouponLine, calculate_price, order_coupons, to_money


def coupon(code, value, kind=DiscountType.PERCENTAGE, role=CreatorRole.PLATFORM, affiliate_id=None):
    if role is CreatorRole.AFFILIATE and affiliate_id is None:
        affiliate_id = uuid.uuid4()
    return CouponLine(
        coupon_id=uuid.uuid4(),
        code=code,
        discount_type=kind,
        discount_value=Decimal(value),
        creator_role=role,
        affiliate_id=affiliate_id,
    )


def test_platform_then_affiliate_with_gst():
    platform = coupon("SAVE10", "10")
    affiliate = coupon("AFF5", "5", role=CreatorRole.AFFILIATE)

    breakdown = calculate_price(Decimal("10000"), [platform, affiliate])

    assert breakdown.platform_discount == Decimal("1000.00")
    assert breakdown.price_after_platform_discount == Decimal("9000.00")
    assert breakdown.affiliate_discount == Decimal("450.00")
    assert breakdown.subtotal == Decimal("8550.00")
    assert breakdown.tax == Decimal("1539.00")
    assert breakdown.final_amount == Decimal("10089.00")
    assert breakdown.total_discount == Decimal("1450.00")
    assert breakdown.affiliate_id == affiliate.affiliate_id
    assert not breakdown.clamped

    snapshot = commission_for(breakdown, Decimal("20"))
    assert snapshot.rate == Decimal("20")
    assert snapshot.amount == Decimal("1800.00")


def test_affiliate_coupon_listed_first_still_applies_second():
    platform = coupon("SAVE10", "10")
    affiliate = coupon("AFF5", "5", role=CreatorRole.AFFILIATE)

    breakdown = calculate_price(Decimal("10000"), [affiliate, platform])

    assert [a.coupon.code for a in breakdown.applied] == ["SAVE10", "AFF5"]
    assert breakdown.affiliate_discount == Decimal("450.00")
    assert breakdown.final_amount == Decimal("10089.00")


def test_fixed_coupon_larger_than_price_is_clamped():
    breakdown = calculate_price(Decimal("500"), [coupon("FLAT600", "600", DiscountType.FIXED)])

    assert breakdown.platform_discount == Decimal("500.00")
    assert breakdown.price_after_platform_discount == Decimal("0.00")
    assert breakdown.subtotal == Decimal("0.00")
    assert breakdown.tax == Decimal("0.00")
    assert breakdown.final_amount == Decimal("0.00")
    assert breakdown.clamped
    assert breakdown.applied[0].clamped


def test_untaxed_channel_without_coupons_charges_base_price():
    breakdown = calculate_price(Decimal("120"), [], taxable=False)

    assert breakdown.final_amount == Decimal("120.00")
    assert breakdown.tax == Decimal("0")
    assert breakdown.tax_rate == Decimal("0")
    assert commission_for(breakdown, Decimal("20")) is None


def test_affiliate_coupon_clamped_against_what_platform_left():
    platform = coupon("FLAT900", "900", DiscountType.FIXED)
    affiliate = coupon("AFF200", "200", DiscountType.FIXED, role=CreatorRole.AFFILIATE)

    breakdown = calculate_price(Decimal("1000"), [platform, affiliate], taxable=False)

    assert breakdown.price_after_platform_discount == Decimal("100.00")
    assert breakdown.affiliate_discount == Decimal("100.00")
    assert breakdown.final_amount == Decimal("0.00")
    assert not breakdown.applied[0].clamped
    assert breakdown.applied[1].clamped


def test_same_group_coupons_stack_on_reduced_base():
    first = coupon("TEN", "10")
    second = coupon("TWENTY", "20")

    breakdown = calculate_price(Decimal("1000"), [first, second], taxable=False)

    # 10% of 1000, then 20% of 900
    assert [a.amount for a in breakdown.applied] == [Decimal("100.00"), Decimal("180.00")]
    assert breakdown.platform_discount == Decimal("280.00")


def test_percentage_rounds_half_up_to_cents():
    breakdown = calculate_price(Decimal("999.99"), [coupon("P", "12.5")], taxable=False)

    # 124.99875 -> 125.00
    assert breakdown.platform_discount == Decimal("125.00")
    assert breakdown.final_amount == Decimal("874.99")


def test_final_amount_is_never_negative():
    coupons = [coupon("A", "100"), coupon("B", "50", DiscountType.FIXED, role=CreatorRole.AFFILIATE)]
    breakdown = calculate_price(Decimal("300"), coupons)

    assert breakdown.final_amount == Decimal("0.00")
    assert breakdown.final_amount >= 0


def test_negative_base_price_rejected():
    with pytest.raises(ValueError):
        calculate_price(Decimal("-1"))


def test_order_coupons_keeps_input_order_within_groups():
    a1 = coupon("A1", "1", role=CreatorRole.AFFILIATE)
    p1 = coupon("P1", "1")
    a2 = coupon("A2", "1", role=CreatorRole.AFFILIATE)
    p2 = coupon("P2", "1")

    assert [c.code for c in order_coupons([a1, p1, a2, p2])] == ["P1", "P2", "A1", "A2"]


def test_commission_excludes_affiliate_discount():
    assert calculate_commission(Decimal("9000"), Decimal("20")) == Decimal("1800.00")
    assert calculate_commission(Decimal("333.33"), Decimal("7.5")) == Decimal("25.00")


def test_commission_rate_cannot_be_negative():
    with pytest.raises(ValueError):
        calculate_commission(Decimal("100"), Decimal("-1"))


def test_to_money():
    assert to_money(Decimal("1.005")) == Decimal("1.01")
    assert to_money(Decimal("2")) == Decimal("2.00")
