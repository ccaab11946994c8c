"""Dispute resolution service."""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.core.exceptions import (
    AlreadyResolved,
    AuthorizationError,
    DuplicateDispute,
    InvalidInput,
    InvalidTransition,
    NotFoundError,
)
from trailhead.domain.booking_state import BookingStatus, PaymentStatus, RefundStatus
from trailhead.domain.cancellation_policy import (
    calculate_refund_amount,
    calculate_refund_percentage,
    days_until_trip_start,
    validate_override_amount,
)
from trailhead.domain.dispute_state import (
    DisputeReason,
    DisputeResolution,
    DisputeStatus,
    assert_dispute_transition,
)
from trailhead.domain.ledger import to_money
from trailhead.gateways.base import PaymentProcessor
from trailhead.models.admin import Dispute
from trailhead.models.booking import Booking
from trailhead.models.trip import TripDate
from trailhead.schemas.common import Actor, ActorRole
from trailhead.services.audit_service import audit_service
from trailhead.services.booking_service import booking_service
from trailhead.services.referral_service import referral_service
from trailhead.services.refund_service import refund_service
from trailhead.utils.clock import utcnow

logger = logging.getLogger(__name__)


class DisputeService:
    """Service for the dispute lifecycle."""

    async def open_dispute(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: Actor,
        reason: DisputeReason | str,
        description: str,
    ) -> Dispute:
        """Open a dispute on a paid booking.

        Raises:
            AuthorizationError: Actor is not the booking's customer
            InvalidTransition: Booking is not paid
            DuplicateDispute: The booking already has an open dispute
        """
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        if actor.role != ActorRole.CUSTOMER or actor.id != booking.customer_id:
            raise AuthorizationError("Only the booking's customer can open a dispute")
        if booking.payment_status != PaymentStatus.PAID.value:
            raise InvalidTransition(
                f"Disputes can only be opened on paid bookings (payment status: {booking.payment_status})"
            )
        try:
            reason = DisputeReason(reason)
        except ValueError:
            raise InvalidInput(f"Invalid dispute reason: {reason}")
        if not description or not description.strip():
            raise InvalidInput("Dispute description is required")

        existing = await db.execute(
            select(Dispute.id).where(
                Dispute.booking_id == booking_id,
                Dispute.status == DisputeStatus.OPEN.value,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateDispute(str(booking_id))

        dispute = Dispute(
            booking_id=booking_id,
            initiator_id=actor.id,
            reason=reason.value,
            description=description.strip(),
            status=DisputeStatus.OPEN.value,
            refund_status=RefundStatus.NONE.value,
        )
        db.add(dispute)
        try:
            await db.flush()
        except IntegrityError:
            # Lost the race against a concurrent open
            raise DuplicateDispute(str(booking_id))

        await audit_service.log_status_change(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action="dispute_open",
            resource_type="dispute",
            resource_id=dispute.id,
            old_status=None,
            new_status=dispute.status,
            booking_id=booking_id,
            reason=dispute.reason,
        )
        logger.info(f"Dispute {dispute.id} opened on booking {booking_id}: {dispute.reason}")
        return dispute

    async def resolve_dispute(
        self,
        db: AsyncSession,
        dispute_id: UUID,
        actor: Actor,
        resolution: DisputeResolution | str,
        processor: PaymentProcessor,
        refund_amount: Decimal | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Dispute:
        """Resolve an open dispute exactly once.

        An approved dispute refunds the customer (the policy amount unless an
        override is given) and cancels the booking if it is still active.

        Raises:
            AlreadyResolved: The dispute was resolved before, including by a concurrent request
            InvalidInput: Override amount outside [0, total_price]
            PaymentProcessorError: Refund failed; the dispute stays open
            RefundPending: Refund unconfirmed; the dispute stays open
        """
        now = now or utcnow()
        if not actor.is_admin:
            raise AuthorizationError("Only admins can resolve disputes")

        dispute = await self.get_dispute(db, dispute_id)
        assert_dispute_transition(str(dispute.id), dispute.status, DisputeStatus.RESOLVED.value)
        try:
            resolution = DisputeResolution(resolution)
        except ValueError:
            raise InvalidInput(f"Invalid resolution: {resolution}")

        booking = await db.get(Booking, dispute.booking_id)
        trip_date = await db.get(TripDate, booking.trip_date_id)
        days = days_until_trip_start(trip_date.start_date, now)

        amount: Decimal | None = None
        idempotency_key = None
        if resolution == DisputeResolution.APPROVED:
            idempotency_key = await refund_service.idempotency_key(
                db, "dispute_refund", dispute.id, booking
            )
            await refund_service.ensure_no_other_pending(db, booking.id, idempotency_key)
            pending = await refund_service.pending_amount(db, idempotency_key)
            if pending is not None:
                # Retry of an unconfirmed refund: the amount already sent is binding
                if refund_amount is not None and to_money(refund_amount) != pending:
                    raise InvalidInput(
                        f"A refund of {pending} for this dispute is pending confirmation; "
                        f"retry with that amount or omit it, got {to_money(refund_amount)}"
                    )
                amount = pending
            elif refund_amount is not None:
                amount = validate_override_amount(
                    refund_amount, booking.total_price, booking.refund_amount
                )
            else:
                amount = calculate_refund_amount(booking.total_price, days, booking.refund_amount)
        elif refund_amount is not None:
            raise InvalidInput("A refund amount can only be given when approving a dispute")

        result = await db.execute(
            update(Dispute)
            .where(Dispute.id == dispute.id, Dispute.status == DisputeStatus.OPEN.value)
            .values(
                status=DisputeStatus.RESOLVED.value,
                resolution=resolution.value,
                refund_amount=amount,
                resolved_by=actor.id,
                resolved_at=now,
                admin_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AlreadyResolved(str(dispute.id))
        await db.refresh(dispute)

        await audit_service.log_status_change(
            db,
            actor_id=actor.id,
            actor_role=actor.role.value,
            action="dispute_resolve",
            resource_type="dispute",
            resource_id=dispute.id,
            old_status=DisputeStatus.OPEN.value,
            new_status=DisputeStatus.RESOLVED.value,
            resolution=resolution.value,
            amount=amount,
        )

        if resolution == DisputeResolution.APPROVED:
            await self._apply_approval(db, dispute, booking, actor, processor, amount, idempotency_key, days, now)

        logger.info(
            f"Dispute {dispute.id} resolved as {resolution.value}"
            + (f" with refund {amount}" if amount else "")
        )
        return dispute

    async def _apply_approval(
        self,
        db: AsyncSession,
        dispute: Dispute,
        booking: Booking,
        actor: Actor,
        processor: PaymentProcessor,
        amount: Decimal,
        idempotency_key: str,
        days: int,
        now: datetime,
    ) -> None:
        active = {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}
        if booking.status in active:
            await booking_service.apply_cancellation(
                db,
                booking,
                actor,
                action="booking_cancel",
                reason=f"Dispute {dispute.id} approved",
                refund_amount=amount,
                refund_percentage=calculate_refund_percentage(days),
                days=days,
                now=now,
            )
        else:
            # Completed trips keep their seats; the earning is still withdrawn
            await referral_service.cancel_on_booking_cancellation(db, booking.id, actor.id)

        if amount > 0:
            await refund_service.execute(
                db,
                processor,
                booking=booking,
                amount=amount,
                idempotency_key=idempotency_key,
                reason=f"Dispute {dispute.id}: {dispute.reason}",
                actor_id=actor.id,
                dispute_id=dispute.id,
            )
            dispute.refund_status = RefundStatus.COMPLETED.value
            dispute.failure_reason = None
            await db.flush()

    async def get_dispute(self, db: AsyncSession, dispute_id: UUID) -> Dispute:
        """Get dispute by ID or raise NotFoundError."""
        dispute = await db.get(Dispute, dispute_id)
        if dispute is None:
            raise NotFoundError("Dispute", str(dispute_id))
        return dispute

    async def list_disputes(
        self,
        db: AsyncSession,
        status: DisputeStatus | str | None = None,
        booking_id: UUID | None = None,
    ) -> list[Dispute]:
        """Admin dispute queue, oldest first."""
        query = select(Dispute)
        if status:
            query = query.where(Dispute.status == DisputeStatus(status).value)
        if booking_id:
            query = query.where(Dispute.booking_id == booking_id)
        result = await db.execute(query.order_by(Dispute.created_at))
        return list(result.scalars().all())


dispute_service = DisputeService()
