"""
Coupon API Endpoints

Validates a coupon code against a course before checkout.
"""

import logging

from fastapi import APIRouter

from academy.api.deps import DB, CurrentUser
from academy.schemas.checkout import PriceBreakdownResponse
from academy.schemas.coupon import CouponValidationResponse, ValidateCouponRequest
from academy.services.coupon_service import CouponService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Coupons"])


@router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(
    request: ValidateCouponRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Validate a coupon code.
    Returns discount details if valid, the reason if not.
    """
    check = await CouponService(db).validate_code(request.code, request.course_id, request.channel)

    response = CouponValidationResponse(valid=check.valid, code=check.code, message=check.message)
    if check.coupon is not None:
        response.creator_role = check.coupon.creator_role
        response.discount_type = check.coupon.discount_type
        response.discount_value = check.coupon.discount_value
    if check.breakdown is not None:
        response.discount_amount = check.breakdown.total_discount
        response.breakdown = PriceBreakdownResponse.from_breakdown(
            check.breakdown, request.channel.currency
        )
    return response
