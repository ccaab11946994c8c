"""Booking state machine."""

from enum import Enum

from trailhead.core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class RefundStatus(str, Enum):
    """Progress of the latest refund attempt against a booking or dispute."""

    NONE = "none"
    PENDING = "pending"
    FAILED = "failed"
    COMPLETED = "completed"


BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Bookings in these states hold seats on their trip date
SEAT_HOLDING_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED}
)


def allowed_sources(target: BookingStatus) -> set[BookingStatus]:
    """States from which ``target`` is reachable in one step."""
    return {source for source, targets in BOOKING_TRANSITIONS.items() if target in targets}


def assert_booking_transition(current: str, target: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(BookingStatus(current), set())
    if BookingStatus(target) not in allowed:
        raise InvalidTransition(
            f"Invalid booking transition: {current} → {target}"
        )
