"""Pydantic schemas for API validation."""

from trailhead.schemas.booking import (
    BookingCreate,
    BookingPayRequest,
    BookingPriceBreakdown,
    BookingQuoteRequest,
    BookingResponse,
    BookingTransitionRequest,
)
from trailhead.schemas.common import Actor, ActorRequest, ActorRole
from trailhead.schemas.referral import (
    EarningFailRequest,
    ReferralEarningResponse,
    ReferralSettingsResponse,
    ReferralSettingsUpdate,
)
from trailhead.schemas.trip import (
    TripCreate,
    TripDateCreate,
    TripDateResponse,
    TripDetailResponse,
    TripResponse,
    TripUpdate,
)

__all__ = [
    # Common
    "Actor",
    "ActorRequest",
    "ActorRole",
    # Booking
    "BookingCreate",
    "BookingPayRequest",
    "BookingPriceBreakdown",
    "BookingQuoteRequest",
    "BookingResponse",
    "BookingTransitionRequest",
    # Trip
    "TripCreate",
    "TripDateCreate",
    "TripDateResponse",
    "TripDetailResponse",
    "TripResponse",
    "TripUpdate",
    # Referral
    "EarningFailRequest",
    "ReferralEarningResponse",
    "ReferralSettingsResponse",
    "ReferralSettingsUpdate",
]
