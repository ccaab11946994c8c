"""Referral program database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from trailhead.database import Base
from trailhead.utils.clock import utcnow


class ReferralEarning(Base):
    """Commission owed to a referrer for a paid booking."""

    __tablename__ = "referral_earnings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, unique=True
    )
    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trips.id"), nullable=False, index=True
    )
    referrer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    earnings_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    referral_payout_percent: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)

    # Status: pending → paid | failed | cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    failure_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )
