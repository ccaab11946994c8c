"""Referral program Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from trailhead.schemas.common import Actor


class ReferralSettingsUpdate(BaseModel):
    """Schema for changing a trip's referral payout percent."""

    actor: Actor
    # Range is enforced by the ledger so violations surface as OutOfRange
    referral_payout_percent: Decimal


class ReferralSettingsResponse(BaseModel):
    """Schema for a trip's referral settings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    referral_payout_percent: Decimal


class EarningFailRequest(BaseModel):
    """Schema for recording a failed payout."""

    actor: Actor
    reason: str = Field(..., min_length=1, max_length=1000)


class ReferralEarningResponse(BaseModel):
    """Schema for referral earning response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    trip_id: UUID
    referrer_id: UUID
    earnings_amount: Decimal
    referral_payout_percent: Decimal
    status: str
    failure_reason: str | None
    created_at: datetime
    paid_at: datetime | None
    cancelled_at: datetime | None
