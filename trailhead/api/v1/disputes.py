"""Dispute endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.api.deps import get_db, get_payment_processor, get_query_actor, get_query_admin
from trailhead.core.exceptions import NotFoundError
from trailhead.domain.dispute_state import DisputeReason, DisputeResolution, DisputeStatus
from trailhead.gateways.base import PaymentProcessor
from trailhead.models.admin import Dispute
from trailhead.models.booking import Booking
from trailhead.schemas.common import Actor
from trailhead.services.dispute_service import dispute_service

router = APIRouter()


# ============ SCHEMAS ============


class DisputeCreate(BaseModel):
    """Schema for opening a dispute."""

    actor: Actor
    booking_id: UUID
    reason: DisputeReason
    description: str = Field(..., min_length=1, max_length=5000)


class DisputeResolve(BaseModel):
    """Schema for resolving a dispute."""

    actor: Actor
    resolution: DisputeResolution
    refund_amount: Decimal | None = None
    notes: str | None = Field(None, max_length=5000)


class DisputeResponse(BaseModel):
    """Schema for dispute response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    initiator_id: UUID
    reason: str
    description: str
    status: str
    resolution: str | None
    refund_amount: Decimal | None
    refund_status: str
    failure_reason: str | None
    admin_notes: str | None
    resolved_by: UUID | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime


# ============ ENDPOINTS ============


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def open_dispute(
    data: DisputeCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Dispute:
    """Open a new dispute."""
    return await dispute_service.open_dispute(
        db=db,
        booking_id=data.booking_id,
        actor=data.actor,
        reason=data.reason,
        description=data.description,
    )


@router.get("", response_model=list[DisputeResponse])
async def list_disputes(
    admin: Annotated[Actor, Depends(get_query_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispute_status: Annotated[DisputeStatus | None, Query(alias="status")] = None,
) -> list[Dispute]:
    """Dispute queue (admin only)."""
    return await dispute_service.list_disputes(db, status=dispute_status)


@router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(
    dispute_id: UUID,
    actor: Annotated[Actor, Depends(get_query_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Dispute:
    """Get dispute details."""
    dispute = await dispute_service.get_dispute(db, dispute_id)

    # Check access: must be the initiator, the booking's guide, or admin
    if not actor.is_admin and actor.id != dispute.initiator_id:
        booking = await db.get(Booking, dispute.booking_id)
        if actor.id != booking.guide_id:
            raise NotFoundError("Dispute", str(dispute_id))

    return dispute


@router.post("/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: UUID,
    data: DisputeResolve,
    db: Annotated[AsyncSession, Depends(get_db)],
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> Dispute:
    """Resolve a dispute (admin only)."""
    return await dispute_service.resolve_dispute(
        db=db,
        dispute_id=dispute_id,
        actor=data.actor,
        resolution=data.resolution,
        processor=processor,
        refund_amount=data.refund_amount,
        notes=data.notes,
    )
