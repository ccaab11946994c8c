"""Base payment processor interface.

All processor adapters must implement this interface.
Business logic should NOT live in adapters - only processor communication.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class GatewayType(str, Enum):
    """Supported payment processors."""

    STRIPE = "stripe"
    MANUAL = "manual"


class OperationStatus(str, Enum):
    """Outcome reported by the processor for a charge or refund."""

    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"


@dataclass
class ChargeResult:
    """Result of a charge operation."""

    status: OperationStatus
    transaction_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None

    @property
    def success(self) -> bool:
        return self.status == OperationStatus.SUCCEEDED


@dataclass
class RefundResult:
    """Result of a refund operation."""

    status: OperationStatus
    refund_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None

    @property
    def success(self) -> bool:
        return self.status == OperationStatus.SUCCEEDED

    @property
    def pending(self) -> bool:
        return self.status == OperationStatus.PENDING


def to_minor_units(amount: Decimal) -> int:
    """Convert a money amount to the smallest currency unit (cents)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentProcessor(ABC):
    """Abstract base class for payment processors."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""
        pass

    @abstractmethod
    async def charge(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        idempotency_key: str,
        description: str = "",
        payment_method: str | None = None,
    ) -> ChargeResult:
        """Charge the customer.

        Args:
            amount: Amount in major units (dollars)
            currency: ISO currency code
            reference_id: Internal reference (booking number)
            idempotency_key: Key the processor deduplicates retries on
            description: Charge description
            payment_method: Processor payment method token, if any

        Returns:
            ChargeResult with transaction details
        """
        pass

    @abstractmethod
    async def refund(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        """Refund part or all of a previous charge.

        Args:
            transaction_id: Original charge transaction ID
            amount: Refund amount in major units
            currency: ISO currency code
            idempotency_key: Key the processor deduplicates retries on
            reason: Refund reason

        Returns:
            RefundResult with refund details
        """
        pass
