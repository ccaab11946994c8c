"""Referral commission ledger.

A customer who referred a booking earns a percentage of its total price
once the booking is paid. Earnings are paid out by an external batch that
reads ``list_payable`` and reports back through ``mark_paid``/``mark_failed``.
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.config import settings
from trailhead.core.exceptions import (
    AuthorizationError,
    DuplicateEarning,
    InvalidInput,
    InvalidTransition,
    NotFoundError,
)
from trailhead.domain.booking_state import BookingStatus, PaymentStatus
from trailhead.domain.earning_state import EarningStatus, assert_earning_transition
from trailhead.domain.ledger import compute_referral_earning, validate_referral_percent
from trailhead.models.booking import Booking
from trailhead.models.referral import ReferralEarning
from trailhead.models.trip import Trip
from trailhead.schemas.common import Actor
from trailhead.services.audit_service import audit_service
from trailhead.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can manage referral payouts")


class ReferralService:
    """Service for referral earnings and per-trip referral settings."""

    async def create_earning(
        self,
        db: AsyncSession,
        booking_id: UUID,
        trip_id: UUID,
        referrer_id: UUID,
    ) -> ReferralEarning | None:
        """Record the referral earning for a paid booking.

        Returns None when the referrer is not eligible (no completed booking
        of their own on the trip) or the trip pays no referral commission.

        Raises:
            InvalidTransition: Booking is not paid
            DuplicateEarning: An earning already exists for the booking
        """
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        if booking.trip_id != trip_id:
            raise InvalidInput(f"Booking '{booking_id}' does not belong to trip '{trip_id}'")
        if referrer_id == booking.customer_id:
            raise InvalidInput("Customers cannot refer their own booking")
        if booking.payment_status != PaymentStatus.PAID.value:
            raise InvalidTransition(
                f"Referral earnings require a paid booking (payment status: {booking.payment_status})"
            )

        existing = await db.execute(
            select(ReferralEarning.id).where(ReferralEarning.booking_id == booking_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateEarning(str(booking_id))

        if settings.referral_requires_prior_booking and not await self._has_completed_booking(
            db, trip_id, referrer_id, exclude_booking_id=booking_id
        ):
            logger.warning(
                f"Referral earning skipped for booking {booking_id}: referrer {referrer_id} "
                f"has not completed trip {trip_id}"
            )
            return None

        trip = await db.get(Trip, trip_id)
        percent = trip.referral_payout_percent
        if percent is None or Decimal(str(percent)) == 0:
            logger.info(f"Referral earning skipped for booking {booking_id}: trip pays 0%")
            return None

        earning = ReferralEarning(
            booking_id=booking_id,
            trip_id=trip_id,
            referrer_id=referrer_id,
            earnings_amount=compute_referral_earning(booking.total_price, percent),
            referral_payout_percent=percent,
            status=EarningStatus.PENDING.value,
        )
        db.add(earning)
        try:
            await db.flush()
        except IntegrityError:
            raise DuplicateEarning(str(booking_id))

        await audit_service.log_status_change(
            db,
            actor_id=booking.customer_id,
            action="earning_create",
            resource_type="referral_earning",
            resource_id=earning.id,
            old_status=None,
            new_status=earning.status,
            booking_id=booking_id,
            amount=earning.earnings_amount,
        )
        logger.info(
            f"Referral earning {earning.id} created: {earning.earnings_amount} "
            f"for referrer {referrer_id} on booking {booking_id}"
        )
        return earning

    async def _has_completed_booking(
        self,
        db: AsyncSession,
        trip_id: UUID,
        customer_id: UUID,
        exclude_booking_id: UUID,
    ) -> bool:
        result = await db.execute(
            select(func.count(Booking.id)).where(
                Booking.trip_id == trip_id,
                Booking.customer_id == customer_id,
                Booking.id != exclude_booking_id,
                Booking.status == BookingStatus.COMPLETED.value,
            )
        )
        return result.scalar_one() > 0

    async def get_referral_settings(self, db: AsyncSession, trip_id: UUID) -> Trip:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError("Trip", str(trip_id))
        return trip

    async def set_referral_percent(
        self,
        db: AsyncSession,
        trip_id: UUID,
        actor: Actor,
        percent: Decimal,
    ) -> Trip:
        """Set the referral payout percent of a trip (0.0-2.0).

        Raises:
            OutOfRange: Percent outside [0.0, 2.0]
            AuthorizationError: Actor is not the trip's guide
        """
        percent = validate_referral_percent(percent)
        trip = await self.get_referral_settings(db, trip_id)
        if trip.guide_id != actor.id:
            raise AuthorizationError("Only the trip's guide can change referral settings")

        old_percent = trip.referral_payout_percent
        trip.referral_payout_percent = percent
        await db.flush()

        await audit_service.log_financial_action(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action="referral_percent_update",
            resource_type="trip",
            resource_id=trip.id,
            old_values={"referral_payout_percent": old_percent},
            new_values={"referral_payout_percent": percent},
        )
        logger.info(f"Trip {trip_id} referral percent {old_percent} → {percent}")
        return trip

    async def get_earning(self, db: AsyncSession, earning_id: UUID) -> ReferralEarning:
        earning = await db.get(ReferralEarning, earning_id)
        if earning is None:
            raise NotFoundError("Referral earning", str(earning_id))
        return earning

    async def _transition(
        self,
        db: AsyncSession,
        earning: ReferralEarning,
        target: EarningStatus,
        actor_id: UUID | None,
        action: str,
        **values,
    ) -> ReferralEarning:
        """Move an earning to ``target`` with an optimistic status check."""
        current = earning.status
        assert_earning_transition(current, target.value)

        result = await db.execute(
            update(ReferralEarning)
            .where(ReferralEarning.id == earning.id, ReferralEarning.status == current)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransition(
                f"Referral earning '{earning.id}' changed concurrently; expected status {current}"
            )
        await db.refresh(earning)

        await audit_service.log_status_change(
            db,
            actor_id=actor_id,
            action=action,
            resource_type="referral_earning",
            resource_id=earning.id,
            old_status=current,
            new_status=target.value,
            amount=earning.earnings_amount,
        )
        logger.info(f"Referral earning {earning.id}: {current} → {target.value}")
        return earning

    async def mark_paid(self, db: AsyncSession, earning_id: UUID, actor: Actor) -> ReferralEarning:
        """Record a successful payout: pending → paid."""
        _require_admin(actor)
        earning = await self.get_earning(db, earning_id)
        return await self._transition(
            db, earning, EarningStatus.PAID, actor.id, "earning_mark_paid",
            paid_at=utcnow(), failure_reason=None,
        )

    async def mark_failed(
        self,
        db: AsyncSession,
        earning_id: UUID,
        actor: Actor,
        reason: str,
    ) -> ReferralEarning:
        """Record a failed payout: pending → failed."""
        _require_admin(actor)
        earning = await self.get_earning(db, earning_id)
        logger.warning(f"Referral payout failed for earning {earning_id}: {reason}")
        return await self._transition(
            db, earning, EarningStatus.FAILED, actor.id, "earning_mark_failed",
            failure_reason=reason,
        )

    async def retry(self, db: AsyncSession, earning_id: UUID, actor: Actor) -> ReferralEarning:
        """Put a failed earning back into the payout queue: failed → pending."""
        _require_admin(actor)
        earning = await self.get_earning(db, earning_id)
        return await self._transition(
            db, earning, EarningStatus.PENDING, actor.id, "earning_retry",
        )

    async def cancel_on_booking_cancellation(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor_id: UUID | None = None,
    ) -> ReferralEarning | None:
        """Cancel the unpaid earning of a cancelled booking.

        A paid earning is left as is; recovering it is a manual process.
        """
        result = await db.execute(
            select(ReferralEarning).where(ReferralEarning.booking_id == booking_id)
        )
        earning = result.scalar_one_or_none()
        if earning is None:
            return None

        if earning.status == EarningStatus.PAID.value:
            logger.warning(
                f"Booking {booking_id} cancelled after referral earning {earning.id} was paid; "
                "earning left unchanged"
            )
            return earning
        if earning.status == EarningStatus.CANCELLED.value:
            return earning

        return await self._transition(
            db, earning, EarningStatus.CANCELLED, actor_id, "earning_cancel",
            cancelled_at=utcnow(),
        )

    async def list_payable(self, db: AsyncSession) -> list[ReferralEarning]:
        """Pending earnings whose booking is completed and still paid."""
        result = await db.execute(
            select(ReferralEarning)
            .join(Booking, Booking.id == ReferralEarning.booking_id)
            .where(
                ReferralEarning.status == EarningStatus.PENDING.value,
                Booking.status == BookingStatus.COMPLETED.value,
                Booking.payment_status == PaymentStatus.PAID.value,
            )
            .order_by(ReferralEarning.created_at)
        )
        return list(result.scalars().all())

    async def list_for_referrer(
        self,
        db: AsyncSession,
        referrer_id: UUID,
        status: str | None = None,
    ) -> list[ReferralEarning]:
        query = select(ReferralEarning).where(ReferralEarning.referrer_id == referrer_id)
        if status:
            query = query.where(ReferralEarning.status == status)
        result = await db.execute(query.order_by(ReferralEarning.created_at.desc()))
        return list(result.scalars().all())


referral_service = ReferralService()
