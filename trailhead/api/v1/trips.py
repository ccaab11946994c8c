"""Trip catalog and referral settings endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.api.deps import get_db
from trailhead.models.trip import Trip, TripDate
from trailhead.schemas.referral import ReferralSettingsResponse, ReferralSettingsUpdate
from trailhead.schemas.trip import (
    TripCreate,
    TripDateCreate,
    TripDateResponse,
    TripDetailResponse,
    TripResponse,
    TripUpdate,
)
from trailhead.services.referral_service import referral_service
from trailhead.services.trip_service import trip_service

router = APIRouter()


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    data: TripCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Trip:
    """Create a trip (guides only)."""
    return await trip_service.create_trip(
        db=db,
        actor=data.actor,
        **data.model_dump(exclude={"actor"}),
    )


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip(
    trip_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TripDetailResponse:
    """Get a trip with its dates."""
    trip = await trip_service.get_trip(db, trip_id)
    dates = await trip_service.list_dates(db, trip_id)
    return TripDetailResponse(
        **TripResponse.model_validate(trip).model_dump(),
        dates=[TripDateResponse.model_validate(d) for d in dates],
    )


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: UUID,
    data: TripUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Trip:
    """Update a trip (owning guide only)."""
    return await trip_service.update_trip(
        db,
        trip_id,
        data.actor,
        **data.model_dump(exclude={"actor"}, exclude_unset=True),
    )


@router.post("/{trip_id}/dates", response_model=TripDateResponse, status_code=status.HTTP_201_CREATED)
async def add_trip_date(
    trip_id: UUID,
    data: TripDateCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TripDate:
    """Add a dated departure to a trip."""
    return await trip_service.add_trip_date(
        db=db,
        trip_id=trip_id,
        actor=data.actor,
        start_date=data.start_date,
        end_date=data.end_date,
        spots_total=data.spots_total,
        price_override=data.price_override,
    )


@router.get("/{trip_id}/referral-settings", response_model=ReferralSettingsResponse)
async def get_referral_settings(
    trip_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Trip:
    """Get a trip's referral payout percent."""
    return await referral_service.get_referral_settings(db, trip_id)


@router.put("/{trip_id}/referral-settings", response_model=ReferralSettingsResponse)
async def set_referral_settings(
    trip_id: UUID,
    data: ReferralSettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Trip:
    """Set a trip's referral payout percent (0.0-2.0)."""
    return await referral_service.set_referral_percent(
        db=db,
        trip_id=trip_id,
        actor=data.actor,
        percent=data.referral_payout_percent,
    )
