"""API endpoints for the affiliate commission ledger (admin only)."""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from academy.api.deps import DB, AdminUser
from academy.models.commission import CommissionStatus
from academy.schemas.commission import (
    AffiliateCommissionStats,
    BulkPayoutRequest,
    CommissionListResponse,
    CommissionResponse,
    PayoutResponse,
)
from academy.services.commission_service import CommissionService

router = APIRouter(tags=["Commissions"])


@router.get("", response_model=CommissionListResponse)
async def list_commissions(
    db: DB,
    admin: AdminUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    affiliate_id: Optional[UUID] = None,
    status: Optional[CommissionStatus] = None,
):
    """List commissions, newest first."""
    items, total, total_amount = await CommissionService(db).list_commissions(
        affiliate_id=affiliate_id,
        status=status,
        skip=skip,
        limit=limit,
    )
    return CommissionListResponse(
        items=[CommissionResponse.model_validate(c) for c in items],
        total=total,
        total_amount=total_amount,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=List[AffiliateCommissionStats])
async def commission_stats(
    db: DB,
    admin: AdminUser,
    affiliate_id: Optional[UUID] = None,
):
    """Pending and paid totals per affiliate."""
    stats = await CommissionService(db).affiliate_stats(affiliate_id)
    return [AffiliateCommissionStats(**vars(s)) for s in stats]


@router.post("/bulk-pay", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def bulk_pay_commissions(
    data: BulkPayoutRequest,
    db: DB,
    admin: AdminUser,
):
    """Mark every PENDING commission of an affiliate as PAID under one payout."""
    payout = await CommissionService(db).bulk_payout(
        affiliate_id=data.affiliate_id,
        payment_method=data.payment_method,
        transaction_reference=data.transaction_reference,
        notes=data.notes,
        processed_by=admin.id,
    )
    return PayoutResponse.model_validate(payout)
