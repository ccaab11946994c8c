"""Trip catalog Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trailhead.schemas.common import Actor


class TripCreate(BaseModel):
    """Schema for creating a trip."""

    actor: Actor
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    price_per_person: Decimal = Field(..., ge=0)
    min_group_size: int = Field(default=1, ge=1)
    max_group_size: int = Field(..., ge=1)
    is_instant_book: bool = False
    referral_payout_percent: Decimal | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)


class TripUpdate(BaseModel):
    """Schema for updating a trip."""

    actor: Actor
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    price_per_person: Decimal | None = Field(None, ge=0)
    min_group_size: int | None = Field(None, ge=1)
    max_group_size: int | None = Field(None, ge=1)
    is_instant_book: bool | None = None
    is_active: bool | None = None


class TripDateCreate(BaseModel):
    """Schema for adding a trip date."""

    actor: Actor
    start_date: date
    end_date: date
    spots_total: int = Field(..., ge=1)
    price_override: Decimal | None = Field(None, ge=0)

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: date, info) -> date:
        start_date = info.data.get("start_date")
        if start_date and v < start_date:
            raise ValueError("end_date must not be before start_date")
        return v


class TripDateResponse(BaseModel):
    """Schema for trip date response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    trip_id: UUID
    start_date: date
    end_date: date
    spots_total: int
    spots_available: int
    price_override: Decimal | None
    is_available: bool


class TripResponse(BaseModel):
    """Schema for trip response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    guide_id: UUID
    title: str
    description: str | None
    price_per_person: Decimal
    currency: str
    min_group_size: int
    max_group_size: int
    referral_payout_percent: Decimal
    is_instant_book: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TripDetailResponse(TripResponse):
    """Trip with its dates."""

    dates: list[TripDateResponse] = []
