"""Ledger arithmetic for booking splits, referral earnings and refunds.

CRITICAL BUSINESS LOGIC:
- The platform takes a commission (12% by default) plus a flat hosting fee
- total_price = price_per_person * participant_count, rounded once to cents
- commission = round(total_price * commission_rate)
- guide_payout = total_price - commission - hosting_fee
- A split whose guide payout would be negative is rejected, never clamped
- All rounding is ROUND_HALF_UP to currency precision
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from trailhead.core.exceptions import InvalidInput, OutOfRange

CENT = Decimal("0.01")
DEFAULT_COMMISSION_RATE = Decimal("0.12")
DEFAULT_HOSTING_FEE = Decimal("1.00")
MAX_REFERRAL_PERCENT = Decimal("2.0")


@dataclass(frozen=True)
class BookingSplit:
    """Monetary split of a booking; total_price == commission + hosting_fee + guide_payout."""

    total_price: Decimal
    commission: Decimal
    hosting_fee: Decimal
    guide_payout: Decimal
    commission_rate: Decimal

    def as_dict(self) -> dict:
        return {
            "total_price": self.total_price,
            "commission_amount": self.commission,
            "hosting_fee": self.hosting_fee,
            "guide_payout": self.guide_payout,
            "commission_rate": self.commission_rate,
        }


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round a value to currency precision (half-up)."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInput(f"Invalid monetary amount: {value!r}")


def compute_split(
    price: Decimal,
    participant_count: int,
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
    hosting_fee: Decimal = DEFAULT_HOSTING_FEE,
) -> BookingSplit:
    """Compute the platform/guide split for a booking.

    Args:
        price: Effective price per participant
        participant_count: Number of participants (>= 1)
        commission_rate: Platform commission as a fraction (0.12 for 12%)
        hosting_fee: Flat per-booking hosting fee

    Returns:
        BookingSplit with all amounts rounded to cents

    Raises:
        InvalidInput: Negative price, empty group, bad rates or a negative payout
    """
    price = Decimal(str(price))
    commission_rate = Decimal(str(commission_rate))
    hosting_fee = Decimal(str(hosting_fee))

    if price < 0:
        raise InvalidInput(f"Price must not be negative, got {price}")
    if participant_count < 1:
        raise InvalidInput(f"Participant count must be at least 1, got {participant_count}")
    if not Decimal("0") <= commission_rate <= Decimal("1"):
        raise InvalidInput(f"Commission rate must be between 0 and 1, got {commission_rate}")
    if hosting_fee < 0:
        raise InvalidInput(f"Hosting fee must not be negative, got {hosting_fee}")

    # Round once on the total, never per unit
    total_price = to_money(price * participant_count)
    commission = to_money(total_price * commission_rate)
    hosting_fee = to_money(hosting_fee)
    guide_payout = total_price - commission - hosting_fee

    if guide_payout < 0:
        raise InvalidInput(
            f"Total price {total_price} does not cover commission {commission} "
            f"and hosting fee {hosting_fee}"
        )

    return BookingSplit(
        total_price=total_price,
        commission=commission,
        hosting_fee=hosting_fee,
        guide_payout=guide_payout,
        commission_rate=commission_rate,
    )


def validate_referral_percent(percent: Decimal) -> Decimal:
    """Return the percent as Decimal if it lies in [0.0, 2.0]."""
    percent = Decimal(str(percent))
    if not Decimal("0") <= percent <= MAX_REFERRAL_PERCENT:
        raise OutOfRange("referral_payout_percent", percent, "0.0", MAX_REFERRAL_PERCENT)
    return percent


def compute_referral_earning(total_price: Decimal, referral_payout_percent: Decimal) -> Decimal:
    """Referral earning = total_price * percent / 100, rounded to cents.

    The percent is range-checked when the guide sets it, not here.
    """
    percent = Decimal(str(referral_payout_percent))
    return to_money(Decimal(str(total_price)) * percent / Decimal("100"))


def refundable_balance(total_price: Decimal, already_refunded: Decimal) -> Decimal:
    """Amount of the collected total that has not been refunded yet."""
    return max(Decimal("0.00"), to_money(total_price) - to_money(already_refunded))
