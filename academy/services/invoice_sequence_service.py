"""
Invoice Sequence Service for Atomic Invoice Numbers

- Financial year based numbering (April-March)
- Separate series per payment channel
- Counter advanced by the database itself (upsert with increment),
  never read-then-increment in application code
- Format: {PREFIX}{FY}{CHANNEL_LETTER}{SEQUENCE}

USAGE:
    service = InvoiceSequenceService(db)
    invoice_number = await service.get_next_invoice_number(PaymentChannel.DOMESTIC)
    # Returns: FT2425G00007
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from academy.config import settings
from academy.models.invoice_sequence import InvoiceSequence
from academy.models.payment import PaymentChannel

PADDING_LENGTH = 5


def format_invoice_number(
    prefix: str,
    financial_year: str,
    channel: PaymentChannel,
    sequence: int,
) -> str:
    """FT + 2425 + G + 00007."""
    return f"{prefix}{financial_year}{channel.invoice_letter}{str(sequence).zfill(PADDING_LENGTH)}"


class InvoiceSequenceService:
    """
    Issues unique, strictly increasing invoice numbers per (channel, FY).

    The increment is a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING
    statement, so the database serializes concurrent callers on the counter
    row. The row stays locked until the caller's transaction ends; callers
    should commit soon after.
    """

    def __init__(self, db: AsyncSession, prefix: Optional[str] = None):
        self.db = db
        self.prefix = prefix or settings.INVOICE_PREFIX

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(InvoiceSequence)
        if dialect == "sqlite":
            return sqlite_insert(InvoiceSequence)
        raise RuntimeError(f"Atomic invoice numbering not supported on '{dialect}'")

    async def next_sequence(
        self,
        channel: PaymentChannel,
        financial_year: Optional[str] = None
    ) -> int:
        """Advance and return the counter for (channel, financial_year)."""
        if not financial_year:
            financial_year = InvoiceSequence.get_financial_year()

        stmt = self._insert().values(
            channel=channel.value,
            financial_year=financial_year,
            current_number=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["channel", "financial_year"],
            set_={
                "current_number": InvoiceSequence.current_number + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        ).returning(InvoiceSequence.current_number)

        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def get_next_invoice_number(
        self,
        channel: PaymentChannel,
        today: Optional[date] = None
    ) -> str:
        """
        Issue the next invoice number.

        Args:
            channel: Payment channel (decides the series letter)
            today: Date used to derive the financial year (defaults to now)

        Returns:
            Formatted invoice number, e.g. FT2425G00007
        """
        financial_year = InvoiceSequence.get_financial_year(today)
        sequence = await self.next_sequence(channel, financial_year)
        return format_invoice_number(self.prefix, financial_year, channel, sequence)

    async def get_current_number(
        self,
        channel: PaymentChannel,
        financial_year: Optional[str] = None
    ) -> int:
        """Last issued sequence number (0 if none issued yet)."""
        if not financial_year:
            financial_year = InvoiceSequence.get_financial_year()

        result = await self.db.execute(
            select(InvoiceSequence.current_number)
            .where(
                InvoiceSequence.channel == channel.value,
                InvoiceSequence.financial_year == financial_year,
            )
        )
        return result.scalar_one_or_none() or 0

    async def preview_next_invoice_number(
        self,
        channel: PaymentChannel,
        financial_year: Optional[str] = None
    ) -> str:
        """What the next number would be, without issuing it."""
        if not financial_year:
            financial_year = InvoiceSequence.get_financial_year()
        current = await self.get_current_number(channel, financial_year)
        return format_invoice_number(self.prefix, financial_year, channel, current + 1)
