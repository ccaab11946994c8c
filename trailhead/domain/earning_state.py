"""Referral earning state machine.

States:
- pending: Booking paid, earning awaiting the payout batch
- paid: Payout sent to the referrer
- failed: Payout attempt failed; may be retried
- cancelled: Booking cancelled before payout
"""

from enum import Enum

from trailhead.core.exceptions import InvalidTransition


class EarningStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


EARNING_TRANSITIONS: dict[EarningStatus, set[EarningStatus]] = {
    EarningStatus.PENDING: {EarningStatus.PAID, EarningStatus.FAILED, EarningStatus.CANCELLED},
    EarningStatus.FAILED: {EarningStatus.PENDING, EarningStatus.CANCELLED},
    EarningStatus.PAID: set(),
    EarningStatus.CANCELLED: set(),
}


def assert_earning_transition(current: str, target: str) -> None:
    """Validate earning state transition.

    Raises:
        InvalidTransition: If transition is not allowed
    """
    allowed = EARNING_TRANSITIONS.get(EarningStatus(current), set())
    if EarningStatus(target) not in allowed:
        raise InvalidTransition(
            f"Invalid referral earning transition: {current} → {target}"
        )
