"""Refund execution against the payment processor.

Callers perform their state writes first in the open transaction and then
call ``execute``. A successful refund is added to that transaction. A failed
or unconfirmed refund rolls the transaction back, records the outcome in a
separate commit and raises, so the booking or dispute keeps its previous
status.
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.core.exceptions import (
    DataIntegrityError,
    InvalidTransition,
    PaymentProcessorError,
    RefundPending,
)
from trailhead.core.idempotency import generate_idempotency_key
from trailhead.domain.booking_state import PaymentStatus, RefundStatus
from trailhead.gateways.base import PaymentProcessor
from trailhead.models.admin import Dispute
from trailhead.models.booking import Booking
from trailhead.models.payment import Refund
from trailhead.services.audit_service import audit_service
from trailhead.services.gateway_service import gateway_service
from trailhead.utils.clock import utcnow

logger = logging.getLogger(__name__)


class RefundService:
    """Service for processor refunds and their bookkeeping."""

    async def idempotency_key(
        self,
        db: AsyncSession,
        operation: str,
        entity_id: UUID,
        booking: Booking,
    ) -> str:
        """Deterministic key for the next refund attempt of an operation.

        Retrying after a pending refund yields the same key; a recorded
        failure moves the key on so the processor sees a fresh request.
        """
        failed = await db.execute(
            select(func.count(Refund.id)).where(
                Refund.booking_id == booking.id,
                Refund.status == RefundStatus.FAILED.value,
            )
        )
        return generate_idempotency_key(
            operation,
            entity_id,
            {
                "refunded_before": str(booking.refund_amount or Decimal("0.00")),
                "failed_attempts": failed.scalar_one(),
            },
        )

    async def pending_amount(self, db: AsyncSession, idempotency_key: str) -> Decimal | None:
        """Amount of an unconfirmed refund previously sent under this key."""
        result = await db.execute(
            select(Refund.amount).where(
                Refund.idempotency_key == idempotency_key,
                Refund.status == RefundStatus.PENDING.value,
            )
        )
        return result.scalar_one_or_none()

    async def ensure_no_other_pending(
        self, db: AsyncSession, booking_id: UUID, idempotency_key: str
    ) -> None:
        """Refuse a new refund while a refund from another request is unconfirmed.

        The unconfirmed refund may still settle at the processor, so the
        refundable balance is unknown until that request is retried.

        Raises:
            InvalidTransition: Another refund on the booking is pending
        """
        result = await db.execute(
            select(Refund.amount).where(
                Refund.booking_id == booking_id,
                Refund.status == RefundStatus.PENDING.value,
                Refund.idempotency_key != idempotency_key,
            )
        )
        pending = list(result.scalars().all())
        if pending:
            logger.warning(
                f"Refund on booking {booking_id} refused: {sum(pending)} pending under another request"
            )
            raise InvalidTransition(
                f"A refund of {sum(pending)} on this booking is pending confirmation; "
                "retry that request before issuing another refund"
            )

    async def execute(
        self,
        db: AsyncSession,
        processor: PaymentProcessor,
        booking: Booking,
        amount: Decimal,
        idempotency_key: str,
        reason: str,
        actor_id: UUID | None = None,
        dispute_id: UUID | None = None,
    ) -> Refund:
        """Refund ``amount`` of a paid booking.

        Raises:
            PaymentProcessorError: Processor rejected the refund (state rolled back)
            RefundPending: Processor did not confirm in time (state rolled back)
        """
        if not booking.payment_reference:
            logger.error(f"DATA_INTEGRITY: paid booking {booking.id} has no payment reference")
            raise DataIntegrityError(f"Booking '{booking.id}' has no payment reference to refund")

        result = await gateway_service.refund(
            processor,
            transaction_id=booking.payment_reference,
            amount=amount,
            currency=booking.currency,
            idempotency_key=idempotency_key,
            reason=reason,
        )

        if result.success:
            refund = await self._upsert_refund(
                db,
                idempotency_key,
                booking_id=booking.id,
                dispute_id=dispute_id,
                amount=amount,
                reason=reason,
                status=RefundStatus.COMPLETED.value,
                gateway=processor.gateway_type.value,
                gateway_refund_id=result.refund_id,
                failure_reason=None,
                processed_by=actor_id,
                processed_at=utcnow(),
            )
            booking.refund_amount = (booking.refund_amount or Decimal("0.00")) + amount
            booking.refund_status = RefundStatus.COMPLETED.value
            booking.refund_failure_reason = None
            booking.payment_status = PaymentStatus.REFUNDED.value
            await db.flush()

            await audit_service.log_financial_action(
                db,
                actor_id=actor_id,
                action="refund_complete",
                resource_type="booking",
                resource_id=booking.id,
                new_values={
                    "refund_id": refund.id,
                    "amount": amount,
                    "refund_amount": booking.refund_amount,
                    "dispute_id": dispute_id,
                },
            )
            logger.info(f"Refunded {amount} {booking.currency} on booking {booking.id}")
            return refund

        status = RefundStatus.PENDING if result.pending else RefundStatus.FAILED
        failure_reason = result.error_message or f"Refund {status.value}"
        booking_id = booking.id
        gateway = processor.gateway_type.value

        await db.rollback()
        await self._upsert_refund(
            db,
            idempotency_key,
            booking_id=booking_id,
            dispute_id=dispute_id,
            amount=amount,
            reason=reason,
            status=status.value,
            gateway=gateway,
            gateway_refund_id=result.refund_id,
            failure_reason=failure_reason,
            processed_by=actor_id,
            processed_at=None,
        )
        if dispute_id is not None:
            await db.execute(
                update(Dispute)
                .where(Dispute.id == dispute_id)
                .values(refund_status=status.value, failure_reason=failure_reason)
                .execution_options(synchronize_session=False)
            )
        else:
            await db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(refund_status=status.value, refund_failure_reason=failure_reason)
                .execution_options(synchronize_session=False)
            )
        await audit_service.log_financial_action(
            db,
            actor_id=actor_id,
            action=f"refund_{status.value}",
            resource_type="dispute" if dispute_id is not None else "booking",
            resource_id=dispute_id or booking_id,
            new_values={"amount": amount, "reason": failure_reason, "booking_id": booking_id},
        )
        await db.commit()

        if status == RefundStatus.PENDING:
            logger.warning(
                f"Refund of {amount} on booking {booking_id} pending confirmation "
                f"(idempotency_key={idempotency_key})"
            )
            raise RefundPending(
                f"Refund of {amount} is pending confirmation; retry the request to finish it"
            )

        logger.error(f"Refund of {amount} on booking {booking_id} failed: {failure_reason}")
        raise PaymentProcessorError(f"Refund failed: {failure_reason}")

    async def _upsert_refund(self, db: AsyncSession, idempotency_key: str, **values) -> Refund:
        result = await db.execute(select(Refund).where(Refund.idempotency_key == idempotency_key))
        refund = result.scalar_one_or_none()
        if refund is None:
            refund = Refund(idempotency_key=idempotency_key, **values)
            db.add(refund)
        else:
            for field, value in values.items():
                setattr(refund, field, value)
        await db.flush()
        return refund

    async def list_for_booking(self, db: AsyncSession, booking_id: UUID) -> list[Refund]:
        result = await db.execute(
            select(Refund).where(Refund.booking_id == booking_id).order_by(Refund.created_at)
        )
        return list(result.scalars().all())


refund_service = RefundService()
