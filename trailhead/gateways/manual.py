"""Manual payment processor adapter for bank transfers and local development."""

import logging
from decimal import Decimal

from trailhead.core.idempotency import IdempotencyStore
from trailhead.gateways.base import (
    ChargeResult,
    GatewayType,
    OperationStatus,
    PaymentProcessor,
    RefundResult,
)

logger = logging.getLogger(__name__)


class ManualGateway(PaymentProcessor):
    """Manual payment processor for bank transfers.

    Charges and refunds are recorded immediately and settled by an admin
    out of band. Replaying an idempotency key returns the original result;
    reusing it for a different request raises IdempotencyConflict.
    """

    def __init__(self, store: IdempotencyStore | None = None):
        self._store = store or IdempotencyStore()

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def charge(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        idempotency_key: str,
        description: str = "",
        payment_method: str | None = None,
    ) -> ChargeResult:
        """Record a manual charge (always succeeds)."""
        fingerprint = f"charge:{reference_id}:{amount:.2f}:{currency}"
        cached = self._store.replay(idempotency_key, fingerprint)
        if cached is not None:
            return cached

        result = ChargeResult(
            status=OperationStatus.SUCCEEDED,
            transaction_id=f"manual_{reference_id}",
            raw_response={
                "type": "bank_transfer",
                "amount": str(amount),
                "currency": currency,
                "payment_method": payment_method or "bank_transfer",
            },
        )
        self._store.record(idempotency_key, fingerprint, result)
        logger.info(f"Manual charge recorded: {reference_id} {amount} {currency}")
        return result

    async def refund(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        """Record a manual refund (admin pays it out via bank transfer)."""
        fingerprint = f"refund:{transaction_id}:{amount:.2f}:{currency}"
        cached = self._store.replay(idempotency_key, fingerprint)
        if cached is not None:
            return cached

        result = RefundResult(
            status=OperationStatus.SUCCEEDED,
            refund_id=f"refund_{transaction_id}_{idempotency_key[:8]}",
            raw_response={
                "type": "manual_refund",
                "amount": str(amount),
                "currency": currency,
                "reason": reason,
            },
        )
        self._store.record(idempotency_key, fingerprint, result)
        logger.info(f"Manual refund recorded: {transaction_id} {amount} {currency}")
        return result
