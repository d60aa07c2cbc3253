"""Course catalog rows read by checkout, and the enrollments it creates."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from academy.database import Base
from academy.db_types import UUIDType, Money


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Prices per payment channel
    price_inr: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Base price for DOMESTIC checkout"
    )
    price_usd: Mapped[Optional[Decimal]] = mapped_column(
        Money,
        nullable=True,
        comment="Base price for FOREX checkout"
    )

    commission_rate: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0"),
        comment="Affiliate commission percentage (current configuration)"
    )
    current_enrollments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Used by confirmation mails only
    instructor: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    schedule: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    live_session_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def price_for_channel(self, channel: str) -> Optional[Decimal]:
        if channel == "FOREX":
            return self.price_usd
        return self.price_inr

    def __repr__(self) -> str:
        return f"<Course(title='{self.title}', commission_rate={self.commission_rate})>"


class Enrollment(Base):
    """
    Links a student to a course.

    Created exactly once per completed payment; the unique payment_id
    rejects a second enrollment from a racing confirmation.
    """
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_enrollment_payment"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("courses.id"),
        nullable=False,
        index=True
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("payments.id"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EnrollmentStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
