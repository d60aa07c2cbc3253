"""
Commission Ledger Service

Read side of the affiliate ledger plus bulk payouts. Commission rows are
created only by payment confirmation; this service never changes their
amount or rate, only their settlement status.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.exceptions import NotFoundError
from academy.models.commission import Commission, CommissionStatus, Payout, PayoutStatus
from academy.models.payment import Payment
from academy.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class AffiliateStats:
    affiliate_id: uuid.UUID
    affiliate_name: Optional[str]
    pending_count: int
    pending_amount: Decimal
    paid_count: int
    paid_amount: Decimal
    total_sales: Decimal


class CommissionService:
    """Affiliate commission ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_commissions(
        self,
        affiliate_id: Optional[uuid.UUID] = None,
        status: Optional[CommissionStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Commission], int, Decimal]:
        """Commissions newest first, with total count and amount of the filtered set."""
        filters = []
        if affiliate_id:
            filters.append(Commission.affiliate_id == affiliate_id)
        if status:
            filters.append(Commission.status == status.value)

        query = select(Commission)
        count_query = select(func.count(Commission.id))
        amount_query = select(func.coalesce(func.sum(Commission.commission_amount), 0))

        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))
            amount_query = amount_query.where(and_(*filters))

        total = (await self.db.execute(count_query)).scalar() or 0
        total_amount = Decimal((await self.db.execute(amount_query)).scalar() or 0)

        query = query.order_by(Commission.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total, total_amount

    async def affiliate_stats(self, affiliate_id: Optional[uuid.UUID] = None) -> List[AffiliateStats]:
        """Pending and paid totals per affiliate."""
        is_pending = Commission.status == CommissionStatus.PENDING.value
        is_paid = Commission.status == CommissionStatus.PAID.value

        query = (
            select(
                Commission.affiliate_id,
                User.name,
                func.sum(case((is_pending, 1), else_=0)),
                func.coalesce(func.sum(case((is_pending, Commission.commission_amount), else_=0)), 0),
                func.sum(case((is_paid, 1), else_=0)),
                func.coalesce(func.sum(case((is_paid, Commission.commission_amount), else_=0)), 0),
                func.coalesce(func.sum(Commission.sale_amount), 0),
            )
            .join(User, User.id == Commission.affiliate_id)
            .group_by(Commission.affiliate_id, User.name)
            .order_by(User.name)
        )
        if affiliate_id:
            query = query.where(Commission.affiliate_id == affiliate_id)

        result = await self.db.execute(query)
        return [
            AffiliateStats(
                affiliate_id=row[0],
                affiliate_name=row[1],
                pending_count=int(row[2] or 0),
                pending_amount=Decimal(row[3] or 0),
                paid_count=int(row[4] or 0),
                paid_amount=Decimal(row[5] or 0),
                total_sales=Decimal(row[6] or 0),
            )
            for row in result.all()
        ]

    async def bulk_payout(
        self,
        affiliate_id: uuid.UUID,
        payment_method: str = "Bank Transfer",
        transaction_reference: Optional[str] = None,
        notes: Optional[str] = None,
        processed_by: Optional[uuid.UUID] = None,
    ) -> Payout:
        """
        Pay out every PENDING commission of an affiliate in one transaction.

        Raises:
            NotFoundError: The affiliate has nothing pending
        """
        result = await self.db.execute(
            select(Commission)
            .where(
                Commission.affiliate_id == affiliate_id,
                Commission.status == CommissionStatus.PENDING.value,
            )
            .with_for_update()
        )
        pending = list(result.scalars().all())
        if not pending:
            raise NotFoundError(
                "No pending commissions for this affiliate",
                {"affiliate_id": str(affiliate_id)},
            )

        now = datetime.now(timezone.utc)
        try:
            payout = Payout(
                affiliate_id=affiliate_id,
                amount=sum((c.commission_amount for c in pending), Decimal("0")),
                commission_count=len(pending),
                status=PayoutStatus.COMPLETED.value,
                payment_method=payment_method,
                transaction_reference=transaction_reference,
                notes=notes,
                processed_by=processed_by,
                processed_at=now,
            )
            self.db.add(payout)
            await self.db.flush()

            for commission in pending:
                commission.status = CommissionStatus.PAID.value
                commission.paid_at = now
                commission.payout_id = payout.id

            await self.db.execute(
                update(Payment)
                .where(Payment.id.in_([c.payment_id for c in pending]))
                .values(commission_paid=True)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(f"Payout for affiliate {affiliate_id} rolled back")
            raise

        logger.info(
            f"Paid {payout.commission_count} commissions to affiliate {affiliate_id}: {payout.amount}"
        )
        return payout
