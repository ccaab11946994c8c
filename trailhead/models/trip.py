"""Trip catalog database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from trailhead.database import Base
from trailhead.utils.clock import utcnow


class Trip(Base):
    """A guide's bookable offering."""

    __tablename__ = "trips"
    __table_args__ = (
        CheckConstraint("price_per_person >= 0", name="ck_trips_price_non_negative"),
        CheckConstraint("min_group_size >= 1", name="ck_trips_min_group"),
        CheckConstraint("max_group_size >= min_group_size", name="ck_trips_group_bounds"),
        CheckConstraint(
            "referral_payout_percent >= 0 AND referral_payout_percent <= 2",
            name="ck_trips_referral_percent",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    guide_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # Pricing
    price_per_person: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Group limits
    min_group_size: Mapped[int] = mapped_column(Integer, default=1)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Referral program (percent of total price, 0.0-2.0)
    referral_payout_percent: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("1.0"))

    # Booking mode
    is_instant_book: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    dates: Mapped[list["TripDate"]] = relationship("TripDate", back_populates="trip")


class TripDate(Base):
    """One dated, seat-limited occurrence of a trip."""

    __tablename__ = "trip_dates"
    __table_args__ = (
        CheckConstraint("spots_total > 0", name="ck_trip_dates_spots_total_positive"),
        CheckConstraint(
            "spots_available >= 0 AND spots_available <= spots_total",
            name="ck_trip_dates_spots_available_bounds",
        ),
        CheckConstraint("end_date >= start_date", name="ck_trip_dates_date_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Seat inventory: only changed through the inventory service's conditional updates
    spots_total: Mapped[int] = mapped_column(Integer, nullable=False)
    spots_available: Mapped[int] = mapped_column(Integer, nullable=False)

    price_override: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="dates")

    def effective_price(self, trip: Trip) -> Decimal:
        """Per-person price for this date: the override if set, else the trip price."""
        if self.price_override is not None:
            return self.price_override
        return trip.price_per_person
