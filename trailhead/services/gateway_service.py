"""Payment gateway service.

Routes payment operations to the configured processor adapter and bounds
every processor call by the payment timeout.
No business logic here - only gateway coordination.
"""

import asyncio
import logging
from decimal import Decimal

from trailhead.config import settings
from trailhead.gateways.base import (
    ChargeResult,
    GatewayType,
    OperationStatus,
    PaymentProcessor,
    RefundResult,
)
from trailhead.gateways.manual import ManualGateway
from trailhead.gateways.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def _assert_production_for_live_stripe(processor: PaymentProcessor) -> None:
    """Block live Stripe keys outside production.

    Raises:
        RuntimeError: If a live key is used in a non-production environment
    """
    if processor.gateway_type != GatewayType.STRIPE or settings.environment == "production":
        return
    secret_key = getattr(processor, "secret_key", None) or ""
    if secret_key.startswith("sk_live_"):
        raise RuntimeError(
            f"Cannot execute live Stripe operations in {settings.environment} environment. "
            "Set ENVIRONMENT=production or use a test key."
        )


class GatewayService:
    """Service for managing payment processor operations."""

    def __init__(self):
        self._gateways: dict[GatewayType, PaymentProcessor] = {}

    def get_processor(self, gateway_type: str | GatewayType | None = None) -> PaymentProcessor:
        """Get or create the processor instance for a gateway type."""
        gateway_type = gateway_type or settings.payment_gateway
        if isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type)
            except ValueError:
                gateway_type = GatewayType.MANUAL

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.STRIPE:
                self._gateways[gateway_type] = StripeGateway()
            else:
                self._gateways[gateway_type] = ManualGateway()

        return self._gateways[gateway_type]

    async def charge(
        self,
        processor: PaymentProcessor,
        amount: Decimal,
        currency: str,
        reference_id: str,
        idempotency_key: str,
        description: str = "",
        payment_method: str | None = None,
    ) -> ChargeResult:
        """Charge via the processor; a timeout is reported as pending."""
        _assert_production_for_live_stripe(processor)
        try:
            return await asyncio.wait_for(
                processor.charge(
                    amount=amount,
                    currency=currency,
                    reference_id=reference_id,
                    idempotency_key=idempotency_key,
                    description=description,
                    payment_method=payment_method,
                ),
                timeout=settings.payment_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Charge for {reference_id} timed out after {settings.payment_timeout_seconds}s "
                f"(idempotency_key={idempotency_key})"
            )
            return ChargeResult(
                status=OperationStatus.PENDING,
                error_message="Payment processor timed out",
            )

    async def refund(
        self,
        processor: PaymentProcessor,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        """Refund via the processor; a timeout is reported as pending."""
        _assert_production_for_live_stripe(processor)
        try:
            return await asyncio.wait_for(
                processor.refund(
                    transaction_id=transaction_id,
                    amount=amount,
                    currency=currency,
                    idempotency_key=idempotency_key,
                    reason=reason,
                ),
                timeout=settings.payment_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Refund of {transaction_id} timed out after {settings.payment_timeout_seconds}s "
                f"(idempotency_key={idempotency_key})"
            )
            return RefundResult(
                status=OperationStatus.PENDING,
                error_message="Payment processor timed out",
            )


# Singleton instance
gateway_service = GatewayService()
