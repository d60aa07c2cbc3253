from fastapi import APIRouter

from academy.api.v1.endpoints import (
    payments,
    coupons,
    commissions,
)

api_router = APIRouter(prefix="/api/v1")

# Checkout
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"]
)
api_router.include_router(
    coupons.router,
    prefix="/coupons",
    tags=["Coupons"]
)

# Affiliate ledger
api_router.include_router(
    commissions.router,
    prefix="/commissions",
    tags=["Commissions"]
)
