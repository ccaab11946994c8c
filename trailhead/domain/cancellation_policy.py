"""Cancellation policy domain logic.

Policy (measured from now to the trip's start date):
- More than 7 days before: full refund
- 4 to 7 days before: 50% refund
- 3 days or less: no refund
"""

import math
from datetime import UTC, date, datetime, time
from decimal import Decimal

from trailhead.core.exceptions import InvalidInput
from trailhead.domain.ledger import refundable_balance, to_money

SECONDS_PER_DAY = 24 * 60 * 60

# Refund rules: list of (min_days_until_start, refund_percentage)
# Evaluated in order - first match wins
POLICY_RULES: list[tuple[int, Decimal]] = [
    (8, Decimal("100")),  # > 7 days: 100% refund
    (4, Decimal("50")),   # 4-7 days: 50% refund
]


def days_until_trip_start(start_date: date, now: datetime) -> int:
    """Whole days from now until the trip starts, rounded up.

    The trip is taken to start at midnight UTC of ``start_date``.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    start = datetime.combine(start_date, time.min, tzinfo=UTC)
    return math.ceil((start - now).total_seconds() / SECONDS_PER_DAY)


def calculate_refund_percentage(days_until_start: int) -> Decimal:
    """Calculate refund percentage (0-100) for the given notice period."""
    for min_days, refund_pct in POLICY_RULES:
        if days_until_start >= min_days:
            return refund_pct
    return Decimal("0")


def calculate_refund_amount(
    total_price: Decimal,
    days_until_start: int,
    already_refunded: Decimal = Decimal("0"),
) -> Decimal:
    """Refund owed under the policy, capped at what is still refundable.

    Args:
        total_price: Total collected for the booking
        days_until_start: Result of days_until_trip_start
        already_refunded: Sum of earlier refunds on the booking

    Returns:
        Decimal: Refund amount rounded to cents
    """
    refund_pct = calculate_refund_percentage(days_until_start)
    amount = to_money(Decimal(str(total_price)) * refund_pct / Decimal("100"))
    return min(amount, refundable_balance(total_price, already_refunded))


def validate_override_amount(
    override: Decimal,
    total_price: Decimal,
    already_refunded: Decimal = Decimal("0"),
) -> Decimal:
    """Check an admin override refund: 0 <= override <= total_price, within the unrefunded balance."""
    override = to_money(override)
    if override < 0 or override > to_money(total_price):
        raise InvalidInput(
            f"Refund amount must be between 0 and {to_money(total_price)}, got {override}"
        )
    balance = refundable_balance(total_price, already_refunded)
    if override > balance:
        raise InvalidInput(
            f"Refund amount {override} exceeds the unrefunded balance {balance}"
        )
    return override


def get_policy_description() -> str:
    """Get human-readable policy description."""
    return (
        "Full refund if cancelled more than 7 days before the trip. "
        "50% refund if cancelled 4-7 days before. "
        "No refund if cancelled 3 days or less before the trip."
    )
