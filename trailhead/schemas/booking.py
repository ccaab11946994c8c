"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from trailhead.schemas.common import Actor


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    actor: Actor
    trip_id: UUID
    trip_date_id: UUID
    participant_count: int = Field(..., ge=1)
    referrer_id: UUID | None = None


class BookingQuoteRequest(BaseModel):
    """Schema for calculating booking price without reserving."""

    trip_id: UUID
    trip_date_id: UUID
    participant_count: int = Field(default=1, ge=1)


class BookingPriceBreakdown(BaseModel):
    """Schema for booking price breakdown."""

    trip_id: UUID
    trip_date_id: UUID
    participant_count: int
    price_per_person: Decimal
    total_price: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    hosting_fee: Decimal
    guide_payout: Decimal
    currency: str


class BookingPayRequest(BaseModel):
    """Schema for paying a booking."""

    actor: Actor
    payment_method: str | None = Field(None, max_length=100)


class BookingTransitionRequest(BaseModel):
    """Schema for confirm/decline/complete/cancel."""

    actor: Actor
    reason: str | None = Field(None, max_length=1000)
    override: bool = False


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    trip_id: UUID
    trip_date_id: UUID
    customer_id: UUID
    guide_id: UUID
    referrer_id: UUID | None
    participant_count: int

    # Pricing
    price_per_person: Decimal
    total_price: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    hosting_fee: Decimal
    guide_payout: Decimal
    currency: str

    # Status
    status: str
    payment_status: str
    payment_reference: str | None

    # Refunds
    refund_status: str
    refund_amount: Decimal
    refund_failure_reason: str | None

    # Cancellation
    cancelled_by: str | None
    cancellation_reason: str | None

    # Timestamps
    created_at: datetime
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    updated_at: datetime
