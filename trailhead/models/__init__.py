"""Database models."""

from trailhead.core.immutability import register_immutability_enforcement
from trailhead.models.admin import AuditLog, Dispute
from trailhead.models.booking import Booking, Cancellation
from trailhead.models.health import FinanceHealthRun
from trailhead.models.payment import Payment, Refund
from trailhead.models.referral import ReferralEarning
from trailhead.models.trip import Trip, TripDate

register_immutability_enforcement()

__all__ = [
    # Trip
    "Trip",
    "TripDate",
    # Booking
    "Booking",
    "Cancellation",
    # Payment
    "Payment",
    "Refund",
    # Referral
    "ReferralEarning",
    # Admin
    "AuditLog",
    "Dispute",
    # Health
    "FinanceHealthRun",
]
