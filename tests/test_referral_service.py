"""Tests for the referral earning ledger."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from trailhead.config import settings
from trailhead.core.exceptions import (
    AuthorizationError,
    DuplicateEarning,
    InvalidTransition,
    OutOfRange,
)
from trailhead.models.referral import ReferralEarning
from trailhead.services.booking_service import booking_service
from trailhead.services.referral_service import referral_service

from .conftest import NOW, make_actor, seed_trip


@pytest.fixture
def referrer():
    return make_actor("customer")


@pytest.fixture
def no_prior_booking_rule(monkeypatch):
    monkeypatch.setattr(settings, "referral_requires_prior_booking", False)


async def _book_and_pay(db, trip, trip_date, customer, processor, count=3, referrer_id=None):
    booking = await booking_service.create_booking(
        db, customer, trip.id, trip_date.id, count, referrer_id=referrer_id, now=NOW
    )
    await booking_service.pay_booking(db, booking.id, customer, processor)
    await db.commit()
    return booking


async def _earning_for(db, booking_id):
    result = await db.execute(select(ReferralEarning).where(ReferralEarning.booking_id == booking_id))
    return result.scalar_one_or_none()


async def _completed_trip_for(db, trip, trip_date, referrer, guide, processor):
    booking = await _book_and_pay(db, trip, trip_date, referrer, processor, count=1)
    await booking_service.complete_booking(db, booking.id, guide, now=NOW + timedelta(days=40))
    await db.commit()
    return booking


async def test_earning_created_when_referrer_completed_trip(db, guide, customer, referrer, processor):
    trip, trip_date = await seed_trip(db, guide, price=Decimal("150.00"), is_instant_book=True)
    await _completed_trip_for(db, trip, trip_date, referrer, guide, processor)

    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    earning = await _earning_for(db, booking.id)
    assert earning is not None
    assert earning.status == "pending"
    assert earning.referrer_id == referrer.id
    assert earning.earnings_amount == Decimal("4.50")
    assert earning.referral_payout_percent == Decimal("1.0")


async def test_no_earning_without_prior_booking(db, guide, customer, referrer, processor):
    trip, trip_date = await seed_trip(db, guide)

    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    assert booking.payment_status == "paid"
    assert await _earning_for(db, booking.id) is None


async def test_no_earning_when_referrer_has_not_taken_trip_yet(db, guide, customer, referrer, processor):
    trip, trip_date = await seed_trip(db, guide, is_instant_book=True)
    prior = await _book_and_pay(db, trip, trip_date, referrer, processor, count=1)
    assert prior.status == "confirmed"
    assert prior.payment_status == "paid"

    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    assert await _earning_for(db, booking.id) is None


async def test_no_earning_when_trip_pays_nothing(
    db, guide, customer, referrer, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide, referral_payout_percent=Decimal("0"))

    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    assert await _earning_for(db, booking.id) is None


async def test_earning_created_at_most_once(
    db, guide, customer, referrer, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    with pytest.raises(DuplicateEarning):
        await referral_service.create_earning(db, booking.id, trip.id, referrer.id)
    await db.rollback()

    count = await db.execute(
        select(func.count()).select_from(ReferralEarning).where(ReferralEarning.booking_id == booking.id)
    )
    assert count.scalar_one() == 1


async def test_earning_requires_paid_booking(db, guide, customer, referrer, no_prior_booking_rule):
    trip, trip_date = await seed_trip(db, guide)
    booking = await booking_service.create_booking(
        db, customer, trip.id, trip_date.id, 1, referrer_id=referrer.id, now=NOW
    )
    await db.commit()

    with pytest.raises(InvalidTransition):
        await referral_service.create_earning(db, booking.id, trip.id, referrer.id)


async def test_cancellation_cancels_pending_earning(
    db, guide, customer, referrer, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    await booking_service.cancel_booking(db, booking.id, customer, processor, now=NOW)
    await db.commit()

    earning = await _earning_for(db, booking.id)
    await db.refresh(earning)
    assert earning.status == "cancelled"
    assert earning.cancelled_at is not None


async def test_paid_earning_survives_cancellation(
    db, guide, customer, referrer, admin, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)
    earning = await _earning_for(db, booking.id)
    await referral_service.mark_paid(db, earning.id, admin)
    await db.commit()

    await booking_service.cancel_booking(db, booking.id, customer, processor, now=NOW)
    await db.commit()

    await db.refresh(earning)
    assert earning.status == "paid"


async def test_payout_failure_and_retry(
    db, guide, customer, referrer, admin, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)
    earning = await _earning_for(db, booking.id)

    await referral_service.mark_failed(db, earning.id, admin, "Bank account closed")
    await db.commit()
    assert earning.status == "failed"
    assert earning.failure_reason == "Bank account closed"

    with pytest.raises(InvalidTransition):
        await referral_service.mark_paid(db, earning.id, admin)

    await referral_service.retry(db, earning.id, admin)
    await referral_service.mark_paid(db, earning.id, admin)
    await db.commit()
    assert earning.status == "paid"
    assert earning.paid_at is not None
    assert earning.failure_reason is None

    with pytest.raises(InvalidTransition):
        await referral_service.retry(db, earning.id, admin)


async def test_payout_actions_require_admin(
    db, guide, customer, referrer, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)
    earning = await _earning_for(db, booking.id)

    with pytest.raises(AuthorizationError):
        await referral_service.mark_paid(db, earning.id, guide)
    with pytest.raises(AuthorizationError):
        await referral_service.mark_failed(db, earning.id, referrer, "nope")


async def test_payable_requires_completed_booking(
    db, guide, customer, referrer, processor, no_prior_booking_rule
):
    trip, trip_date = await seed_trip(db, guide, is_instant_book=True)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    assert await referral_service.list_payable(db) == []

    await booking_service.complete_booking(db, booking.id, guide, now=NOW + timedelta(days=40))
    await db.commit()

    payable = await referral_service.list_payable(db)
    assert [e.booking_id for e in payable] == [booking.id]


async def test_list_for_referrer(db, guide, customer, referrer, processor, no_prior_booking_rule):
    trip, trip_date = await seed_trip(db, guide)
    booking = await _book_and_pay(db, trip, trip_date, customer, processor, referrer_id=referrer.id)

    earnings = await referral_service.list_for_referrer(db, referrer.id)
    assert [e.booking_id for e in earnings] == [booking.id]
    assert await referral_service.list_for_referrer(db, referrer.id, status="paid") == []


async def test_guide_sets_referral_percent(db, guide):
    trip, _ = await seed_trip(db, guide)

    updated = await referral_service.set_referral_percent(db, trip.id, guide, Decimal("1.5"))
    await db.commit()

    assert updated.referral_payout_percent == Decimal("1.5")


@pytest.mark.parametrize("percent", ["2.5", "-0.5"])
async def test_referral_percent_out_of_range(db, guide, percent):
    trip, _ = await seed_trip(db, guide)
    with pytest.raises(OutOfRange):
        await referral_service.set_referral_percent(db, trip.id, guide, Decimal(percent))


async def test_only_trip_guide_sets_percent(db, guide):
    trip, _ = await seed_trip(db, guide)
    with pytest.raises(AuthorizationError):
        await referral_service.set_referral_percent(db, trip.id, make_actor("guide"), Decimal("1"))
