"""Seat inventory for trip dates.

Every change to ``trip_dates.spots_available`` goes through a single
conditional UPDATE so concurrent reservations can never overbook a date.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.core.exceptions import DataIntegrityError, InsufficientSpots, InvalidInput, NotFoundError
from trailhead.models.trip import TripDate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationToken:
    """Proof of a successful reservation."""

    trip_date_id: UUID
    count: int


def _validate_count(count: int) -> None:
    if count < 1:
        raise InvalidInput(f"Seat count must be at least 1, got {count}")


class SeatInventory:
    """Atomic reserve/release of trip date seats."""

    async def reserve(self, db: AsyncSession, trip_date_id: UUID, count: int) -> ReservationToken:
        """Take ``count`` seats from a trip date.

        Raises:
            InvalidInput: count < 1
            NotFoundError: Unknown trip date
            InsufficientSpots: Not enough seats, or the date is closed
        """
        _validate_count(count)

        result = await db.execute(
            update(TripDate)
            .where(
                TripDate.id == trip_date_id,
                TripDate.spots_available >= count,
                TripDate.is_available.is_(True),
            )
            .values(spots_available=TripDate.spots_available - count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            exists = await db.execute(select(TripDate.id).where(TripDate.id == trip_date_id))
            if exists.scalar_one_or_none() is None:
                raise NotFoundError("Trip date", str(trip_date_id))
            logger.info(f"Reservation refused: {count} seat(s) on trip date {trip_date_id}")
            raise InsufficientSpots(count, str(trip_date_id))

        logger.info(f"Reserved {count} seat(s) on trip date {trip_date_id}")
        return ReservationToken(trip_date_id=trip_date_id, count=count)

    async def release(self, db: AsyncSession, trip_date_id: UUID, count: int) -> None:
        """Return ``count`` seats to a trip date.

        Raises:
            InvalidInput: count < 1
            DataIntegrityError: Release would push availability above the total
        """
        _validate_count(count)

        result = await db.execute(
            update(TripDate)
            .where(
                TripDate.id == trip_date_id,
                TripDate.spots_available + count <= TripDate.spots_total,
            )
            .values(spots_available=TripDate.spots_available + count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(
                f"DATA_INTEGRITY: releasing {count} seat(s) on trip date {trip_date_id} "
                "would exceed spots_total or the date does not exist"
            )
            raise DataIntegrityError(
                f"Seat release of {count} on trip date '{trip_date_id}' violates inventory bounds"
            )

        logger.info(f"Released {count} seat(s) on trip date {trip_date_id}")

    async def availability(self, db: AsyncSession, trip_date_id: UUID) -> int:
        """Current spots_available read straight from the database."""
        result = await db.execute(
            select(TripDate.spots_available).where(TripDate.id == trip_date_id)
        )
        available = result.scalar_one_or_none()
        if available is None:
            raise NotFoundError("Trip date", str(trip_date_id))
        return available


seat_inventory = SeatInventory()
