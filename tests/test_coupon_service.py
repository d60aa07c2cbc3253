import uuid
from decimal import Decimal

import pytest

from academy.core.exceptions import NotFoundError, ValidationError
from academy.models.coupon import CreatorRole
from academy.models.payment import PaymentChannel
from academy.services.coupon_service import CouponService, parse_coupon_codes


def test_parse_coupon_codes():
    assert parse_coupon_codes(None) == []
    assert parse_coupon_codes("") == []
    assert parse_coupon_codes(" save10, aff5,,SAVE10 ") == ["SAVE10", "AFF5"]


async def test_resolve_keeps_buyer_order(db, seed):
    lines = await CouponService(db).resolve(["AFF5", "SAVE10"], seed.course.id)

    assert [l.code for l in lines] == ["AFF5", "SAVE10"]
    assert lines[0].creator_role is CreatorRole.AFFILIATE
    assert lines[0].affiliate_id == seed.affiliate.id
    assert lines[1].creator_role is CreatorRole.PLATFORM


@pytest.mark.parametrize(
    "code, message",
    [
        ("NOPE", "Invalid coupon code: NOPE"),
        ("EXPIRED", "This coupon has expired: EXPIRED"),
        ("FUTURE", "This coupon is not yet active: FUTURE"),
        ("INACTIVE", "This coupon is no longer active: INACTIVE"),
        ("USEDUP", "This coupon has reached its usage limit: USEDUP"),
        ("TAROTONLY", "This coupon is not applicable to this course: TAROTONLY"),
    ],
)
async def test_resolve_rejects_unusable_coupon(db, seed, code, message):
    with pytest.raises(ValidationError) as exc_info:
        await CouponService(db).resolve(["SAVE10", code], seed.course.id)

    assert exc_info.value.message == message
    assert exc_info.value.details == {"code": code}


async def test_scoped_coupon_accepted_on_its_course(db, seed):
    lines = await CouponService(db).resolve(["TAROTONLY"], seed.other_course.id)

    assert [l.code for l in lines] == ["TAROTONLY"]


async def test_coupons_from_two_affiliates_rejected(db, seed):
    with pytest.raises(ValidationError) as exc_info:
        await CouponService(db).resolve(["AFF5", "MEERA5"], seed.course.id)

    assert "more than one affiliate" in exc_info.value.message


async def test_two_coupons_from_same_affiliate_allowed(db, seed):
    lines = await CouponService(db).resolve(["AFF5", "AFF100"], seed.course.id)

    assert len(lines) == 2


async def test_validate_code_previews_discount(db, seed):
    check = await CouponService(db).validate_code(" save10 ", seed.course.id)

    assert check.valid
    assert check.code == "SAVE10"
    assert check.breakdown.total_discount == Decimal("1000.00")
    assert check.breakdown.final_amount == Decimal("10620.00")
    assert check.message == "Coupon applied! You save INR 1000.00"


async def test_validate_code_forex_is_untaxed(db, seed):
    check = await CouponService(db).validate_code("SAVE10", seed.course.id, PaymentChannel.FOREX)

    assert check.valid
    assert check.breakdown.final_amount == Decimal("108.00")


async def test_validate_code_reports_problem_without_raising(db, seed):
    service = CouponService(db)

    unknown = await service.validate_code("NOPE", seed.course.id)
    expired = await service.validate_code("EXPIRED", seed.course.id)

    assert not unknown.valid
    assert unknown.message == "Invalid coupon code"
    assert not expired.valid
    assert expired.message == "This coupon has expired"
    assert expired.coupon is not None


async def test_validate_code_course_not_sold_in_usd(db, seed):
    check = await CouponService(db).validate_code("SAVE10", seed.small_course.id, PaymentChannel.FOREX)

    assert not check.valid
    assert check.message == "Course is not sold in USD"


async def test_validate_code_unknown_course(db, seed):
    with pytest.raises(NotFoundError):
        await CouponService(db).validate_code("SAVE10", uuid.uuid4())
