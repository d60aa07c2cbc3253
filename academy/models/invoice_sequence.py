"""
Invoice Sequence Model for Atomic Invoice Numbering

• Financial year based numbering (April-March)
• Separate series per payment channel (G = domestic, F = forex)
• Counter advanced by the database in a single upsert statement
• Format: {PREFIX}{FY}{CHANNEL}{SEQUENCE}, e.g. FT2425G00007
"""

import uuid
from datetime import datetime, date, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from academy.database import Base
from academy.db_types import UUIDType


class InvoiceSequence(Base):
    """
    One counter per (channel, financial year).

    Example:
        channel = "DOMESTIC"
        financial_year = "2425"
        current_number = 6
        → Next invoice: FT2425G00007
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        UniqueConstraint(
            "channel", "financial_year",
            name="uq_invoice_sequence_channel_fy"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="DOMESTIC, FOREX"
    )
    financial_year: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
        comment="e.g., 2425 for FY 2024-25"
    )
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last issued sequence number"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @staticmethod
    def get_financial_year(today: Optional[date] = None) -> str:
        """
        Get financial year code.

        Indian financial year: April to March
        - Oct 2024 → 2425
        - Feb 2025 → 2425
        - Apr 2025 → 2526
        """
        if today is None:
            today = datetime.now(timezone.utc).date()

        if today.month >= 4:  # April onwards
            fy_start = today.year
        else:  # Jan-Mar
            fy_start = today.year - 1
        fy_end = fy_start + 1

        return f"{fy_start % 100:02d}{fy_end % 100:02d}"

    def __repr__(self) -> str:
        return f"<InvoiceSequence({self.channel}/{self.financial_year}: {self.current_number})>"
