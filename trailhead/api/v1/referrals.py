"""Referral earning endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.api.deps import get_db, get_query_actor, get_query_admin
from trailhead.core.exceptions import AuthorizationError
from trailhead.domain.earning_state import EarningStatus
from trailhead.models.referral import ReferralEarning
from trailhead.schemas.common import Actor, ActorRequest
from trailhead.schemas.referral import EarningFailRequest, ReferralEarningResponse
from trailhead.services.referral_service import referral_service

router = APIRouter()


@router.get("/earnings", response_model=list[ReferralEarningResponse])
async def list_earnings(
    referrer_id: UUID,
    actor: Annotated[Actor, Depends(get_query_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    earning_status: Annotated[EarningStatus | None, Query(alias="status")] = None,
) -> list[ReferralEarning]:
    """Earnings of one referrer (the referrer or an admin)."""
    if not actor.is_admin and actor.id != referrer_id:
        raise AuthorizationError("You can only view your own referral earnings")
    return await referral_service.list_for_referrer(
        db, referrer_id, status=earning_status.value if earning_status else None
    )


@router.get("/payable", response_model=list[ReferralEarningResponse])
async def list_payable(
    admin: Annotated[Actor, Depends(get_query_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[ReferralEarning]:
    """Earnings ready for the payout batch (admin only)."""
    return await referral_service.list_payable(db)


@router.post("/earnings/{earning_id}/mark-paid", response_model=ReferralEarningResponse)
async def mark_paid(
    earning_id: UUID,
    data: ActorRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReferralEarning:
    """Record a successful payout."""
    return await referral_service.mark_paid(db, earning_id, data.actor)


@router.post("/earnings/{earning_id}/mark-failed", response_model=ReferralEarningResponse)
async def mark_failed(
    earning_id: UUID,
    data: EarningFailRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReferralEarning:
    """Record a failed payout."""
    return await referral_service.mark_failed(db, earning_id, data.actor, data.reason)


@router.post("/earnings/{earning_id}/retry", response_model=ReferralEarningResponse)
async def retry_earning(
    earning_id: UUID,
    data: ActorRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReferralEarning:
    """Return a failed earning to the payout queue."""
    return await referral_service.retry(db, earning_id, data.actor)
