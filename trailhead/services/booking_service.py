"""Booking lifecycle service.

Creation, payment and the guide/customer transitions of a booking. Every
transition is a single optimistic UPDATE guarded on the expected status, so
of two concurrent requests for the same booking exactly one wins.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.config import settings
from trailhead.core.exceptions import (
    AuthorizationError,
    InvalidInput,
    InvalidTransition,
    NotFoundError,
    PaymentProcessorError,
)
from trailhead.core.idempotency import generate_idempotency_key
from trailhead.domain.booking_state import (
    BookingStatus,
    PaymentStatus,
    allowed_sources,
    assert_booking_transition,
)
from trailhead.domain.cancellation_policy import (
    calculate_refund_amount,
    calculate_refund_percentage,
    days_until_trip_start,
)
from trailhead.domain.ledger import BookingSplit, compute_split, refundable_balance
from trailhead.gateways.base import PaymentProcessor
from trailhead.models.booking import Booking, Cancellation
from trailhead.models.payment import Payment
from trailhead.models.trip import Trip, TripDate
from trailhead.schemas.common import Actor, ActorRole
from trailhead.services.audit_service import audit_service
from trailhead.services.gateway_service import gateway_service
from trailhead.services.inventory_service import seat_inventory
from trailhead.services.referral_service import referral_service
from trailhead.services.refund_service import refund_service
from trailhead.utils.booking_number import generate_booking_number
from trailhead.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingQuote:
    """Price breakdown for a prospective booking."""

    trip_id: UUID
    trip_date_id: UUID
    participant_count: int
    price_per_person: Decimal
    currency: str
    split: BookingSplit


class BookingService:
    """Service for the booking state machine."""

    # ============ Lookups ============

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def get_booking_for_actor(self, db: AsyncSession, booking_id: UUID, actor: Actor) -> Booking:
        """Booking visible to its customer, its guide or an admin."""
        booking = await self.get_booking(db, booking_id)
        if not actor.is_admin and actor.id not in (booking.customer_id, booking.guide_id):
            raise AuthorizationError("You don't have access to this booking")
        return booking

    async def _get_trip_and_date(
        self,
        db: AsyncSession,
        trip_id: UUID,
        trip_date_id: UUID,
    ) -> tuple[Trip, TripDate]:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError("Trip", str(trip_id))
        trip_date = await db.get(TripDate, trip_date_id)
        if trip_date is None or trip_date.trip_id != trip.id:
            raise NotFoundError("Trip date", str(trip_date_id))
        return trip, trip_date

    # ============ Creation ============

    async def quote(
        self,
        db: AsyncSession,
        trip_id: UUID,
        trip_date_id: UUID,
        participant_count: int,
    ) -> BookingQuote:
        """Price breakdown without reserving seats."""
        trip, trip_date = await self._get_trip_and_date(db, trip_id, trip_date_id)
        self._validate_group_size(trip, participant_count)
        price = trip_date.effective_price(trip)
        split = compute_split(
            price,
            participant_count,
            commission_rate=settings.platform_commission_rate,
            hosting_fee=settings.hosting_fee,
        )
        return BookingQuote(
            trip_id=trip.id,
            trip_date_id=trip_date.id,
            participant_count=participant_count,
            price_per_person=price,
            currency=trip.currency,
            split=split,
        )

    def _validate_group_size(self, trip: Trip, participant_count: int) -> None:
        if participant_count < 1 or participant_count > trip.max_group_size:
            raise InvalidInput(
                f"Participant count must be between 1 and {trip.max_group_size}, "
                f"got {participant_count}"
            )

    async def create_booking(
        self,
        db: AsyncSession,
        actor: Actor,
        trip_id: UUID,
        trip_date_id: UUID,
        participant_count: int,
        referrer_id: UUID | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Reserve seats and create a booking with a frozen split.

        All validation happens before the seat reservation; the reservation
        and the insert share the caller's transaction.

        Raises:
            AuthorizationError: Actor is not a customer
            InvalidInput: Bad group size, past/closed date, self-booking or self-referral
            InsufficientSpots: Not enough seats left
        """
        now = now or utcnow()
        if actor.role != ActorRole.CUSTOMER:
            raise AuthorizationError("Only customers can create bookings")

        trip, trip_date = await self._get_trip_and_date(db, trip_id, trip_date_id)
        if not trip.is_active:
            raise InvalidInput(f"Trip '{trip_id}' is not accepting bookings")
        if not trip_date.is_available:
            raise InvalidInput(f"Trip date '{trip_date_id}' is not available")
        if trip_date.start_date <= now.date():
            raise InvalidInput("Trip date must be in the future")
        self._validate_group_size(trip, participant_count)
        if actor.id == trip.guide_id:
            raise InvalidInput("Guides cannot book their own trips")
        if referrer_id is not None and referrer_id == actor.id:
            raise InvalidInput("Customers cannot refer themselves")

        price = trip_date.effective_price(trip)
        # Rejects a negative guide payout before any mutation
        split = compute_split(
            price,
            participant_count,
            commission_rate=settings.platform_commission_rate,
            hosting_fee=settings.hosting_fee,
        )

        await seat_inventory.reserve(db, trip_date.id, participant_count)

        instant = trip.is_instant_book
        booking = Booking(
            booking_number=await generate_booking_number(db),
            trip_id=trip.id,
            trip_date_id=trip_date.id,
            customer_id=actor.id,
            guide_id=trip.guide_id,
            referrer_id=referrer_id,
            participant_count=participant_count,
            price_per_person=price,
            total_price=split.total_price,
            commission_rate=split.commission_rate,
            commission_amount=split.commission,
            hosting_fee=split.hosting_fee,
            guide_payout=split.guide_payout,
            currency=trip.currency,
            status=(BookingStatus.CONFIRMED if instant else BookingStatus.PENDING).value,
            payment_status=PaymentStatus.UNPAID.value,
            confirmed_at=now if instant else None,
        )
        db.add(booking)
        await db.flush()

        await audit_service.log_status_change(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action="booking_create",
            resource_type="booking",
            resource_id=booking.id,
            old_status=None,
            new_status=booking.status,
            **split.as_dict(),
        )
        logger.info(
            f"Booking {booking.booking_number} created ({booking.status}): "
            f"{participant_count} on trip date {trip_date.id}, total {split.total_price}"
        )
        return booking

    # ============ Transitions ============

    async def _transition(
        self,
        db: AsyncSession,
        booking: Booking,
        target: BookingStatus,
        actor: Actor,
        action: str,
        **values,
    ) -> str:
        """Optimistically move a booking to ``target``; returns the previous status."""
        current = booking.status
        assert_booking_transition(current, target.value)

        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == current)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransition(
                f"Booking '{booking.id}' is no longer {current}; it was changed concurrently"
            )
        await db.refresh(booking)

        await audit_service.log_status_change(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action=action,
            resource_type="booking",
            resource_id=booking.id,
            old_status=current,
            new_status=target.value,
        )
        logger.info(f"Booking {booking.booking_number}: {current} → {target.value} by {actor.role.value}")
        return current

    def _require_guide(self, booking: Booking, actor: Actor) -> None:
        if actor.role != ActorRole.GUIDE or actor.id != booking.guide_id:
            raise AuthorizationError("Only the trip's guide can perform this action")

    async def confirm_booking(self, db: AsyncSession, booking_id: UUID, actor: Actor) -> Booking:
        """Guide accepts a pending booking. The split is not recomputed."""
        booking = await self.get_booking(db, booking_id)
        self._require_guide(booking, actor)
        await self._transition(
            db, booking, BookingStatus.CONFIRMED, actor, "booking_confirm", confirmed_at=utcnow()
        )
        return booking

    async def complete_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: Actor,
        override: bool = False,
        now: datetime | None = None,
    ) -> Booking:
        """Mark a confirmed booking completed once its trip has ended.

        Admins may pass ``override`` to complete before the end date.
        """
        now = now or utcnow()
        booking = await self.get_booking(db, booking_id)
        if override:
            if not actor.is_admin:
                raise AuthorizationError("Only admins can override the trip end date")
        elif not actor.is_admin:
            self._require_guide(booking, actor)

        if not override:
            trip_date = await db.get(TripDate, booking.trip_date_id)
            if now.date() < trip_date.end_date:
                raise InvalidTransition(
                    f"Booking cannot be completed before the trip ends on {trip_date.end_date}"
                )

        await self._transition(
            db, booking, BookingStatus.COMPLETED, actor, "booking_complete", completed_at=now
        )
        return booking

    async def decline_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: Actor,
        processor: PaymentProcessor,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Guide rejects a pending booking; a paid booking is refunded in full."""
        now = now or utcnow()
        booking = await self.get_booking(db, booking_id)
        self._require_guide(booking, actor)
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidTransition(f"Only pending bookings can be declined (status: {booking.status})")

        refund_amount = Decimal("0.00")
        if booking.payment_status == PaymentStatus.PAID.value:
            refund_amount = refundable_balance(booking.total_price, booking.refund_amount)

        return await self._cancel(
            db,
            booking,
            actor,
            processor,
            action="booking_decline",
            operation="booking_decline_refund",
            reason=reason,
            refund_amount=refund_amount,
            refund_percentage=Decimal("100"),
            now=now,
        )

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: Actor,
        processor: PaymentProcessor,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Customer or admin cancels; a paid booking is refunded per the policy."""
        now = now or utcnow()
        booking = await self.get_booking(db, booking_id)
        if not actor.is_admin and not (
            actor.role == ActorRole.CUSTOMER and actor.id == booking.customer_id
        ):
            raise AuthorizationError("Only the booking's customer or an admin can cancel")
        if booking.status not in {s.value for s in allowed_sources(BookingStatus.CANCELLED)}:
            raise InvalidTransition(f"Booking cannot be cancelled (status: {booking.status})")

        trip_date = await db.get(TripDate, booking.trip_date_id)
        days = days_until_trip_start(trip_date.start_date, now)
        percentage = calculate_refund_percentage(days)
        refund_amount = Decimal("0.00")
        if booking.payment_status == PaymentStatus.PAID.value:
            refund_amount = calculate_refund_amount(booking.total_price, days, booking.refund_amount)

        return await self._cancel(
            db,
            booking,
            actor,
            processor,
            action="booking_cancel",
            operation="booking_cancel_refund",
            reason=reason,
            refund_amount=refund_amount,
            refund_percentage=percentage,
            days=days,
            now=now,
        )

    async def _cancel(
        self,
        db: AsyncSession,
        booking: Booking,
        actor: Actor,
        processor: PaymentProcessor,
        action: str,
        operation: str,
        reason: str | None,
        refund_amount: Decimal,
        refund_percentage: Decimal,
        now: datetime,
        days: int | None = None,
    ) -> Booking:
        """Cancel, release seats, cancel the referral earning, then refund.

        The processor is called last; if it does not succeed every write of
        this method is rolled back.
        """
        if days is None:
            trip_date = await db.get(TripDate, booking.trip_date_id)
            days = days_until_trip_start(trip_date.start_date, now)

        # Same key when retrying after a pending refund
        idempotency_key = await refund_service.idempotency_key(db, operation, booking.id, booking)
        await refund_service.ensure_no_other_pending(db, booking.id, idempotency_key)
        pending = await refund_service.pending_amount(db, idempotency_key)
        if pending is not None:
            refund_amount = pending

        await self.apply_cancellation(
            db, booking, actor, action, reason, refund_amount, refund_percentage, days, now
        )

        if refund_amount > 0:
            await refund_service.execute(
                db,
                processor,
                booking=booking,
                amount=refund_amount,
                idempotency_key=idempotency_key,
                reason=reason or f"{action} refund",
                actor_id=actor.id,
            )
        return booking

    async def apply_cancellation(
        self,
        db: AsyncSession,
        booking: Booking,
        actor: Actor,
        action: str,
        reason: str | None,
        refund_amount: Decimal,
        refund_percentage: Decimal,
        days: int,
        now: datetime,
    ) -> None:
        """State side of a cancellation: status, seats, referral earning, cancellation record."""
        await self._transition(
            db,
            booking,
            BookingStatus.CANCELLED,
            actor,
            action,
            cancelled_at=now,
            cancelled_by=actor.role.value,
            cancellation_reason=reason,
        )
        await seat_inventory.release(db, booking.trip_date_id, booking.participant_count)
        await referral_service.cancel_on_booking_cancellation(db, booking.id, actor.id)

        db.add(
            Cancellation(
                booking_id=booking.id,
                initiated_by=actor.role.value,
                actor_id=actor.id,
                reason=reason,
                days_until_trip=days,
                refund_percentage=refund_percentage,
                refund_amount=refund_amount,
            )
        )
        await db.flush()

    # ============ Payment ============

    async def pay_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: Actor,
        processor: PaymentProcessor,
        payment_method: str | None = None,
    ) -> Booking:
        """Charge the customer for a booking and record any referral earning.

        Raises:
            InvalidTransition: Booking is not payable
            PaymentProcessorError: Charge failed or was not confirmed; booking stays unpaid
        """
        booking = await self.get_booking(db, booking_id)
        if actor.role != ActorRole.CUSTOMER or actor.id != booking.customer_id:
            raise AuthorizationError("Only the booking's customer can pay for it")

        payable = {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}
        if booking.status not in payable or booking.payment_status != PaymentStatus.UNPAID.value:
            raise InvalidTransition(
                f"Booking is not payable (status: {booking.status}, payment: {booking.payment_status})"
            )

        idempotency_key = generate_idempotency_key(
            "booking_charge", booking.id, {"amount": str(booking.total_price)}
        )
        result = await gateway_service.charge(
            processor,
            amount=booking.total_price,
            currency=booking.currency,
            reference_id=booking.booking_number,
            idempotency_key=idempotency_key,
            description=f"Trip booking {booking.booking_number}",
            payment_method=payment_method,
        )
        if not result.success:
            logger.error(
                f"Charge for booking {booking.booking_number} {result.status.value}: "
                f"{result.error_message}"
            )
            raise PaymentProcessorError(
                f"Payment {result.status.value}: {result.error_message or 'charge not completed'}"
            )

        update_result = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.payment_status == PaymentStatus.UNPAID.value,
                Booking.status.in_(payable),
            )
            .values(payment_status=PaymentStatus.PAID.value, payment_reference=result.transaction_id)
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount == 0:
            logger.error(
                f"Charge {result.transaction_id} succeeded but booking {booking.booking_number} "
                "changed concurrently; manual refund required"
            )
            raise InvalidTransition("Booking changed while the payment was being processed")
        await db.refresh(booking)

        payment = Payment(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            amount=booking.total_price,
            currency=booking.currency,
            gateway=processor.gateway_type.value,
            transaction_id=result.transaction_id,
            idempotency_key=idempotency_key,
            gateway_response=result.raw_response,
        )
        db.add(payment)
        await db.flush()

        await audit_service.log_financial_action(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action="booking_pay",
            resource_type="booking",
            resource_id=booking.id,
            old_values={"payment_status": PaymentStatus.UNPAID.value},
            new_values={
                "payment_status": PaymentStatus.PAID.value,
                "amount": booking.total_price,
                "transaction_id": result.transaction_id,
            },
        )
        logger.info(f"Booking {booking.booking_number} paid: {booking.total_price} {booking.currency}")

        if booking.referrer_id is not None:
            await referral_service.create_earning(
                db, booking.id, booking.trip_id, booking.referrer_id
            )
        return booking

    async def list_for_trip_date(self, db: AsyncSession, trip_date_id: UUID) -> list[Booking]:
        result = await db.execute(
            select(Booking).where(Booking.trip_date_id == trip_date_id).order_by(Booking.created_at)
        )
        return list(result.scalars().all())


booking_service = BookingService()
