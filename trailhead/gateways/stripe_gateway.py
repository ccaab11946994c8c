"""Stripe payment processor adapter."""

import asyncio
import logging
from decimal import Decimal

import stripe

from trailhead.config import settings
from trailhead.gateways.base import (
    ChargeResult,
    GatewayType,
    OperationStatus,
    PaymentProcessor,
    RefundResult,
    to_minor_units,
)

logger = logging.getLogger(__name__)

_INTENT_STATUSES = {
    "succeeded": OperationStatus.SUCCEEDED,
    "processing": OperationStatus.PENDING,
    "requires_action": OperationStatus.PENDING,
    "requires_capture": OperationStatus.PENDING,
}

_REFUND_STATUSES = {
    "succeeded": OperationStatus.SUCCEEDED,
    "pending": OperationStatus.PENDING,
    "requires_action": OperationStatus.PENDING,
}


class StripeGateway(PaymentProcessor):
    """Stripe payment processor implementation.

    The Stripe SDK is synchronous; calls run in a worker thread so the
    caller's timeout applies.
    """

    def __init__(self, secret_key: str | None = None):
        self.secret_key = secret_key or settings.stripe_secret_key

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    async def charge(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        idempotency_key: str,
        description: str = "",
        payment_method: str | None = None,
    ) -> ChargeResult:
        """Create and confirm a Stripe PaymentIntent."""
        if not self.secret_key:
            return ChargeResult(
                status=OperationStatus.FAILED,
                error_message="Stripe not configured",
            )

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self.secret_key,
                amount=to_minor_units(amount),
                currency=currency.lower(),
                description=description,
                payment_method=payment_method,
                confirm=payment_method is not None,
                metadata={"reference_id": reference_id},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe charge failed for {reference_id}: {e}")
            return ChargeResult(
                status=OperationStatus.FAILED,
                error_message=str(e),
            )

        return ChargeResult(
            status=_INTENT_STATUSES.get(intent.status, OperationStatus.FAILED),
            transaction_id=intent.id,
            raw_response={"id": intent.id, "status": intent.status},
        )

    async def refund(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        """Process Stripe refund."""
        if not self.secret_key:
            return RefundResult(
                status=OperationStatus.FAILED,
                error_message="Stripe not configured",
            )

        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create,
                api_key=self.secret_key,
                payment_intent=transaction_id,
                amount=to_minor_units(amount),
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe refund failed for {transaction_id}: {e}")
            return RefundResult(
                status=OperationStatus.FAILED,
                error_message=str(e),
            )

        return RefundResult(
            status=_REFUND_STATUSES.get(refund.status, OperationStatus.FAILED),
            refund_id=refund.id,
            error_message=getattr(refund, "failure_reason", None),
            raw_response={"status": refund.status, "id": refund.id},
        )
