"""
Billing Details Service

Stores what the buyer typed into the billing section of checkout:
- GST number (from a verified TaxIdentifier) on the user profile
- Default billing address, taken from the explicit address or, failing
  that, from the GST principal place of business

This runs after the order exists. A failure here is logged and swallowed:
billing details never decide whether an order goes through.
"""

import logging
import uuid
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.models.user import User, UserAddress
from academy.schemas.checkout import BillingAddress, BillingInfoResponse, TaxIdentifier

logger = logging.getLogger(__name__)


def address_from_tax_identifier(tax_identifier: TaxIdentifier) -> Optional[BillingAddress]:
    """Billing address derived from the GST registration, if it carries one."""
    principal = tax_identifier.principal_address
    if principal is None:
        return None
    line = principal.address_line()
    if not (line and principal.district and principal.state and principal.pin_code):
        return None
    try:
        return BillingAddress(
            address_line1=line,
            city=principal.district,
            state=principal.state,
            pin_code=principal.pin_code,
        )
    except ValidationError as e:
        logger.warning(f"GST principal address for {tax_identifier.gstin} is unusable: {e.error_count()} errors")
        return None


class BillingService:
    """Buyer billing profile."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_default_address(self, user_id: uuid.UUID) -> Optional[UserAddress]:
        result = await self.db.execute(
            select(UserAddress)
            .where(UserAddress.user_id == user_id, UserAddress.is_default == True)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_billing_info(self, user: User) -> BillingInfoResponse:
        address = await self.get_default_address(user.id)
        return BillingInfoResponse(
            gst_number=user.gst_number,
            is_gst_verified=user.is_gst_verified,
            address=BillingAddress(
                address_line1=address.address_line1,
                address_line2=address.address_line2 or "",
                city=address.city,
                state=address.state,
                pin_code=address.pin_code,
                country=address.country,
            ) if address else None,
        )

    async def save_billing_details(
        self,
        user_id: uuid.UUID,
        billing_address: Optional[BillingAddress] = None,
        tax_identifier: Optional[TaxIdentifier] = None,
    ) -> bool:
        """
        Persist billing details for a buyer.

        Returns:
            True if anything was saved, False if there was nothing to save
            or saving failed
        """
        if billing_address is None and tax_identifier is None:
            return False

        try:
            user = await self.db.get(User, user_id)
            if user is None:
                logger.warning(f"Billing details for unknown user {user_id} ignored")
                return False

            if tax_identifier is not None:
                user.gst_number = tax_identifier.gstin
                user.is_gst_verified = True

            address = billing_address
            if address is None and tax_identifier is not None:
                address = address_from_tax_identifier(tax_identifier)

            if address is not None:
                await self._upsert_default_address(user_id, address)

            await self.db.commit()
            logger.info(f"Saved billing details for user {user_id}")
            return True

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to save billing details for user {user_id}: {e}")
            return False

    async def _upsert_default_address(self, user_id: uuid.UUID, address: BillingAddress) -> UserAddress:
        existing = await self.get_default_address(user_id)
        values = address.model_dump()
        if existing is not None:
            for key, value in values.items():
                setattr(existing, key, value)
            return existing

        row = UserAddress(user_id=user_id, is_default=True, **values)
        self.db.add(row)
        return row
