"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from trailhead.database import Base
from trailhead.utils.clock import utcnow

# Financial columns frozen at creation time (see core.immutability)
FROZEN_FINANCIAL_FIELDS = (
    "price_per_person",
    "participant_count",
    "total_price",
    "commission_rate",
    "commission_amount",
    "hosting_fee",
    "guide_payout",
    "currency",
)


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("participant_count >= 1", name="ck_bookings_participants"),
        # Exact NUMERIC arithmetic is only guaranteed on PostgreSQL
        CheckConstraint(
            "total_price = commission_amount + hosting_fee + guide_payout",
            name="ck_bookings_split_reconciles",
        ).ddl_if(dialect="postgresql"),
        CheckConstraint("guide_payout >= 0", name="ck_bookings_payout_non_negative"),
        CheckConstraint(
            "refund_amount >= 0 AND refund_amount <= total_price",
            name="ck_bookings_refund_bounds",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # TRIP-XXXXXX
    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trips.id"), nullable=False, index=True
    )
    trip_date_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trip_dates.id"), nullable=False, index=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    guide_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    referrer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing (frozen at creation)
    price_per_person: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    hosting_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    guide_payout: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", index=True
    )  # pending, confirmed, completed, cancelled
    payment_status: Mapped[str] = mapped_column(
        String(20), default="unpaid"
    )  # unpaid, paid, refunded
    payment_reference: Mapped[str | None] = mapped_column(String(100))

    # Refunds
    refund_status: Mapped[str] = mapped_column(
        String(20), default="none"
    )  # none, pending, failed, completed
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    refund_failure_reason: Mapped[str | None] = mapped_column(Text)

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(10))  # customer, guide, admin
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Cancellation(Base):
    """Record of a booking cancellation and the refund decision behind it."""

    __tablename__ = "cancellations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    initiated_by: Mapped[str] = mapped_column(String(10), nullable=False)  # customer, guide, admin
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    days_until_trip: Mapped[int] = mapped_column(Integer, nullable=False)
    refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
