"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.api.deps import get_db, get_payment_processor, get_query_actor
from trailhead.gateways.base import PaymentProcessor
from trailhead.models.booking import Booking
from trailhead.schemas.booking import (
    BookingCreate,
    BookingPayRequest,
    BookingPriceBreakdown,
    BookingQuoteRequest,
    BookingResponse,
    BookingTransitionRequest,
)
from trailhead.schemas.common import Actor
from trailhead.services.booking_service import booking_service

router = APIRouter()


@router.post("/quote", response_model=BookingPriceBreakdown)
async def quote_booking(
    data: BookingQuoteRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingPriceBreakdown:
    """Calculate the price breakdown without reserving seats."""
    quote = await booking_service.quote(
        db=db,
        trip_id=data.trip_id,
        trip_date_id=data.trip_date_id,
        participant_count=data.participant_count,
    )
    return BookingPriceBreakdown(
        trip_id=quote.trip_id,
        trip_date_id=quote.trip_date_id,
        participant_count=quote.participant_count,
        price_per_person=quote.price_per_person,
        currency=quote.currency,
        **quote.split.as_dict(),
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Reserve seats and create a booking."""
    return await booking_service.create_booking(
        db=db,
        actor=data.actor,
        trip_id=data.trip_id,
        trip_date_id=data.trip_date_id,
        participant_count=data.participant_count,
        referrer_id=data.referrer_id,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    actor: Annotated[Actor, Depends(get_query_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Get booking details."""
    return await booking_service.get_booking_for_actor(db, booking_id, actor)


@router.post("/{booking_id}/pay", response_model=BookingResponse)
async def pay_booking(
    booking_id: UUID,
    data: BookingPayRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> Booking:
    """Charge the customer for a booking."""
    return await booking_service.pay_booking(
        db=db,
        booking_id=booking_id,
        actor=data.actor,
        processor=processor,
        payment_method=data.payment_method,
    )


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: UUID,
    data: BookingTransitionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Guide confirms a pending booking."""
    return await booking_service.confirm_booking(db=db, booking_id=booking_id, actor=data.actor)


@router.post("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: UUID,
    data: BookingTransitionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> Booking:
    """Guide declines a pending booking."""
    return await booking_service.decline_booking(
        db=db,
        booking_id=booking_id,
        actor=data.actor,
        processor=processor,
        reason=data.reason,
    )


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    data: BookingTransitionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Mark a confirmed booking completed."""
    return await booking_service.complete_booking(
        db=db,
        booking_id=booking_id,
        actor=data.actor,
        override=data.override,
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    data: BookingTransitionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> Booking:
    """Customer or admin cancels a booking."""
    return await booking_service.cancel_booking(
        db=db,
        booking_id=booking_id,
        actor=data.actor,
        processor=processor,
        reason=data.reason,
    )
