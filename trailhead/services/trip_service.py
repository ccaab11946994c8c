"""Trip catalog service: guide-owned trips and their dated departures."""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.config import settings
from trailhead.core.exceptions import AuthorizationError, InvalidInput, NotFoundError
from trailhead.domain.ledger import to_money, validate_referral_percent
from trailhead.models.trip import Trip, TripDate
from trailhead.schemas.common import Actor, ActorRole

logger = logging.getLogger(__name__)


def _validate_group_limits(min_group_size: int, max_group_size: int) -> None:
    if min_group_size < 1:
        raise InvalidInput(f"min_group_size must be at least 1, got {min_group_size}")
    if max_group_size < min_group_size:
        raise InvalidInput(
            f"max_group_size ({max_group_size}) must not be below min_group_size ({min_group_size})"
        )


def _validate_price(price: Decimal, field: str = "price_per_person") -> Decimal:
    price = to_money(price)
    if price < 0:
        raise InvalidInput(f"{field} must not be negative, got {price}")
    return price


class TripService:
    """Service for the trip catalog."""

    async def create_trip(
        self,
        db: AsyncSession,
        actor: Actor,
        title: str,
        price_per_person: Decimal,
        max_group_size: int,
        min_group_size: int = 1,
        description: str | None = None,
        is_instant_book: bool = False,
        referral_payout_percent: Decimal | None = None,
        currency: str | None = None,
    ) -> Trip:
        if actor.role != ActorRole.GUIDE:
            raise AuthorizationError("Only guides can create trips")
        _validate_group_limits(min_group_size, max_group_size)
        percent = validate_referral_percent(
            settings.default_referral_payout_percent
            if referral_payout_percent is None
            else referral_payout_percent
        )

        trip = Trip(
            guide_id=actor.id,
            title=title,
            description=description,
            price_per_person=_validate_price(price_per_person),
            currency=currency or settings.default_currency,
            min_group_size=min_group_size,
            max_group_size=max_group_size,
            referral_payout_percent=percent,
            is_instant_book=is_instant_book,
            is_active=True,
        )
        db.add(trip)
        await db.flush()
        logger.info(f"Trip {trip.id} created by guide {actor.id}")
        return trip

    async def get_trip(self, db: AsyncSession, trip_id: UUID) -> Trip:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError("Trip", str(trip_id))
        return trip

    async def _get_owned_trip(self, db: AsyncSession, trip_id: UUID, actor: Actor) -> Trip:
        trip = await self.get_trip(db, trip_id)
        if actor.role != ActorRole.GUIDE or trip.guide_id != actor.id:
            raise AuthorizationError("Only the trip's guide can change it")
        return trip

    async def update_trip(
        self,
        db: AsyncSession,
        trip_id: UUID,
        actor: Actor,
        **changes,
    ) -> Trip:
        """Update price, limits or flags. Existing bookings keep their frozen split."""
        trip = await self._get_owned_trip(db, trip_id, actor)

        if changes.get("price_per_person") is not None:
            changes["price_per_person"] = _validate_price(changes["price_per_person"])
        if changes.get("referral_payout_percent") is not None:
            changes["referral_payout_percent"] = validate_referral_percent(
                changes["referral_payout_percent"]
            )
        _validate_group_limits(
            changes.get("min_group_size") or trip.min_group_size,
            changes.get("max_group_size") or trip.max_group_size,
        )

        for field, value in changes.items():
            if value is not None:
                setattr(trip, field, value)
        await db.flush()
        logger.info(f"Trip {trip_id} updated: {sorted(k for k, v in changes.items() if v is not None)}")
        return trip

    async def add_trip_date(
        self,
        db: AsyncSession,
        trip_id: UUID,
        actor: Actor,
        start_date: date,
        end_date: date,
        spots_total: int,
        price_override: Decimal | None = None,
    ) -> TripDate:
        """Add a departure; availability starts at the full seat count."""
        trip = await self._get_owned_trip(db, trip_id, actor)
        if spots_total < 1:
            raise InvalidInput(f"spots_total must be at least 1, got {spots_total}")
        if end_date < start_date:
            raise InvalidInput("end_date must not be before start_date")

        trip_date = TripDate(
            trip_id=trip.id,
            start_date=start_date,
            end_date=end_date,
            spots_total=spots_total,
            spots_available=spots_total,
            price_override=(
                _validate_price(price_override, "price_override") if price_override is not None else None
            ),
            is_available=True,
        )
        db.add(trip_date)
        await db.flush()
        logger.info(f"Trip date {trip_date.id} added to trip {trip_id}: {start_date} ({spots_total} spots)")
        return trip_date

    async def list_dates(self, db: AsyncSession, trip_id: UUID) -> list[TripDate]:
        result = await db.execute(
            select(TripDate).where(TripDate.trip_id == trip_id).order_by(TripDate.start_date)
        )
        return list(result.scalars().all())


trip_service = TripService()
