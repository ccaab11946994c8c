"""Tests for opening and resolving disputes."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from trailhead.core.exceptions import (
    AlreadyResolved,
    AuthorizationError,
    DuplicateDispute,
    InvalidInput,
    InvalidTransition,
    PaymentProcessorError,
    RefundPending,
)
from trailhead.config import settings
from trailhead.services.booking_service import booking_service
from trailhead.services.dispute_service import dispute_service
from trailhead.services.inventory_service import seat_inventory
from trailhead.services.refund_service import refund_service

from .conftest import NOW, make_actor, seed_trip


async def _paid_booking(db, guide, customer, processor, start_date=None):
    trip, trip_date = await seed_trip(
        db, guide, price=Decimal("150.00"), start_date=start_date, is_instant_book=True
    )
    booking = await booking_service.create_booking(db, customer, trip.id, trip_date.id, 3, now=NOW)
    await booking_service.pay_booking(db, booking.id, customer, processor)
    await db.commit()
    return booking, trip_date


async def _open(db, booking, customer, reason="guide_no_show"):
    dispute = await dispute_service.open_dispute(
        db, booking.id, customer, reason, "Guide never arrived at the trailhead"
    )
    await db.commit()
    return dispute


async def test_open_dispute(db, guide, customer, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)

    dispute = await _open(db, booking, customer)

    assert dispute.status == "open"
    assert dispute.reason == "guide_no_show"
    assert dispute.refund_status == "none"
    assert dispute.initiator_id == customer.id


async def test_open_dispute_requires_paid_booking(db, guide, customer):
    trip, trip_date = await seed_trip(db, guide)
    booking = await booking_service.create_booking(db, customer, trip.id, trip_date.id, 1, now=NOW)
    await db.commit()

    with pytest.raises(InvalidTransition):
        await dispute_service.open_dispute(db, booking.id, customer, "other", "Changed my mind")


async def test_open_dispute_by_other_customer_rejected(db, guide, customer, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    with pytest.raises(AuthorizationError):
        await dispute_service.open_dispute(db, booking.id, make_actor("customer"), "other", "Not mine")


async def test_open_dispute_validates_input(db, guide, customer, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    with pytest.raises(InvalidInput):
        await dispute_service.open_dispute(db, booking.id, customer, "weather", "Rain")
    with pytest.raises(InvalidInput):
        await dispute_service.open_dispute(db, booking.id, customer, "other", "   ")


async def test_second_open_dispute_rejected(db, guide, customer, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    await _open(db, booking, customer)

    with pytest.raises(DuplicateDispute):
        await dispute_service.open_dispute(db, booking.id, customer, "other", "Again")


async def test_approve_with_override_refunds_and_cancels(db, guide, customer, admin, processor):
    booking, trip_date = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)

    await dispute_service.resolve_dispute(
        db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
    )
    await db.commit()

    assert dispute.status == "resolved"
    assert dispute.resolution == "approved"
    assert dispute.refund_amount == Decimal("100.00")
    assert dispute.refund_status == "completed"
    assert dispute.resolved_by == admin.id
    assert booking.status == "cancelled"
    assert booking.payment_status == "refunded"
    assert booking.refund_amount == Decimal("100.00")
    assert processor.refunds[-1]["amount"] == Decimal("100.00")
    assert await seat_inventory.availability(db, trip_date.id) == 10


async def test_approve_without_override_uses_policy(db, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor, start_date=date(2026, 1, 6))
    dispute = await _open(db, booking, customer)

    await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.commit()

    assert dispute.refund_amount == Decimal("225.00")
    assert booking.refund_amount == Decimal("225.00")


async def test_approve_completed_booking_keeps_status(db, guide, customer, admin, processor):
    booking, trip_date = await _paid_booking(db, guide, customer, processor)
    later = NOW + timedelta(days=40)
    await booking_service.complete_booking(db, booking.id, guide, now=later)
    await db.commit()
    dispute = await _open(db, booking, customer)

    await dispute_service.resolve_dispute(
        db, dispute.id, admin, "approved", processor, refund_amount=Decimal("450.00"), now=later
    )
    await db.commit()

    assert booking.status == "completed"
    assert booking.payment_status == "refunded"
    assert booking.refund_amount == Decimal("450.00")
    assert await seat_inventory.availability(db, trip_date.id) == 7


async def test_override_out_of_bounds_rejected(db, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)

    with pytest.raises(InvalidInput):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "approved", processor, refund_amount=Decimal("450.01"), now=NOW
        )
    await db.rollback()
    await db.refresh(dispute)
    assert dispute.status == "open"


async def test_deny_leaves_booking_alone(db, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)

    await dispute_service.resolve_dispute(
        db, dispute.id, admin, "denied", processor, notes="Guide showed GPS track", now=NOW
    )
    await db.commit()

    assert dispute.resolution == "denied"
    assert dispute.refund_amount is None
    assert dispute.admin_notes == "Guide showed GPS track"
    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert processor.refunds == []

    # A resolved dispute no longer blocks a new one
    second = await _open(db, booking, customer, reason="billing_issue")
    assert second.id != dispute.id


async def test_deny_with_amount_rejected(db, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    with pytest.raises(InvalidInput):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "denied", processor, refund_amount=Decimal("10"), now=NOW
        )


async def test_resolve_requires_admin(db, guide, customer, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    with pytest.raises(AuthorizationError):
        await dispute_service.resolve_dispute(db, dispute.id, guide, "denied", processor, now=NOW)


async def test_resolve_twice_rejected(db, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    await dispute_service.resolve_dispute(
        db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
    )
    await db.commit()

    with pytest.raises(AlreadyResolved):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
        )
    assert len(processor.refunds) == 1


async def test_concurrent_resolve_has_one_winner(db, session_factory, guide, customer, admin, processor):
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)

    async def attempt() -> bool:
        async with session_factory() as session:
            try:
                await dispute_service.resolve_dispute(
                    session, dispute.id, admin, "denied", processor, now=NOW
                )
            except AlreadyResolved:
                await session.rollback()
                return False
            await session.commit()
            return True

    results = await asyncio.gather(attempt(), attempt())
    assert sorted(results) == [False, True]


async def test_failed_refund_keeps_dispute_open(db, guide, customer, admin, processor):
    booking, trip_date = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    processor.refund_outcomes = ["failed"]

    with pytest.raises(PaymentProcessorError):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
        )
    await db.refresh(dispute)
    await db.refresh(booking)

    assert dispute.status == "open"
    assert dispute.refund_status == "failed"
    assert dispute.failure_reason
    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert await seat_inventory.availability(db, trip_date.id) == 7

    await dispute_service.resolve_dispute(
        db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
    )
    await db.commit()
    assert dispute.status == "resolved"
    assert dispute.refund_status == "completed"



async def test_pending_refund_keeps_dispute_open_and_retries_same_key(
    db, guide, customer, admin, processor, monkeypatch
):
    monkeypatch.setattr(settings, "payment_timeout_seconds", 0.05)
    booking, trip_date = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    processor.refund_outcomes = ["timeout"]

    with pytest.raises(RefundPending) as exc_info:
        await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.refresh(dispute)
    await db.refresh(booking)

    assert exc_info.value.status_code == 504
    assert dispute.status == "open"
    assert dispute.refund_status == "pending"
    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert await seat_inventory.availability(db, trip_date.id) == 7

    await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.commit()

    assert dispute.status == "resolved"
    assert dispute.refund_status == "completed"
    assert booking.status == "cancelled"
    assert [r["amount"] for r in processor.refunds] == [Decimal("450.00"), Decimal("450.00")]
    assert processor.refunds[0]["idempotency_key"] == processor.refunds[1]["idempotency_key"]
    refunds = await refund_service.list_for_booking(db, booking.id)
    assert [(r.status, r.amount) for r in refunds] == [("completed", Decimal("450.00"))]


async def test_retry_after_pending_refund_rejects_different_amount(
    db, guide, customer, admin, processor, monkeypatch
):
    monkeypatch.setattr(settings, "payment_timeout_seconds", 0.05)
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    processor.refund_outcomes = ["timeout"]
    with pytest.raises(RefundPending):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "approved", processor, refund_amount=Decimal("100"), now=NOW
        )

    with pytest.raises(InvalidInput):
        await dispute_service.resolve_dispute(
            db, dispute.id, admin, "approved", processor, refund_amount=Decimal("200"), now=NOW
        )
    await db.rollback()
    assert len(processor.refunds) == 1

    await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.commit()
    assert dispute.refund_amount == Decimal("100.00")


async def test_dispute_refund_refused_while_cancellation_refund_pending(
    db, guide, customer, admin, processor, monkeypatch
):
    monkeypatch.setattr(settings, "payment_timeout_seconds", 0.05)
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    processor.refund_outcomes = ["timeout"]
    with pytest.raises(RefundPending):
        await booking_service.cancel_booking(db, booking.id, customer, processor, now=NOW)

    with pytest.raises(InvalidTransition):
        await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.rollback()
    await db.refresh(dispute)
    assert dispute.status == "open"
    assert len(processor.refunds) == 1

    await booking_service.cancel_booking(db, booking.id, customer, processor, now=NOW)
    await db.commit()
    await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.commit()

    await db.refresh(booking)
    assert dispute.status == "resolved"
    assert dispute.refund_amount == Decimal("0.00")
    assert booking.refund_amount == Decimal("450.00")
    assert sum(r.amount for r in await refund_service.list_for_booking(db, booking.id)) <= booking.total_price


async def test_cancellation_refused_while_dispute_refund_pending(
    db, guide, customer, admin, processor, monkeypatch
):
    monkeypatch.setattr(settings, "payment_timeout_seconds", 0.05)
    booking, _ = await _paid_booking(db, guide, customer, processor)
    dispute = await _open(db, booking, customer)
    processor.refund_outcomes = ["timeout"]
    with pytest.raises(RefundPending):
        await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)

    with pytest.raises(InvalidTransition):
        await booking_service.cancel_booking(db, booking.id, customer, processor, now=NOW)
    await db.rollback()
    await db.refresh(booking)
    assert booking.status == "confirmed"
    assert len(processor.refunds) == 1

    await dispute_service.resolve_dispute(db, dispute.id, admin, "approved", processor, now=NOW)
    await db.commit()
    await db.refresh(booking)
    assert booking.status == "cancelled"
    assert booking.refund_amount == Decimal("450.00")

async def test_list_disputes_filters_by_status(db, guide, customer, admin, processor):
    first, _ = await _paid_booking(db, guide, customer, processor)
    other_customer = make_actor("customer")
    second, _ = await _paid_booking(db, guide, other_customer, processor)
    resolved = await _open(db, first, customer)
    still_open = await _open(db, second, other_customer)
    await dispute_service.resolve_dispute(db, resolved.id, admin, "denied", processor, now=NOW)
    await db.commit()

    open_ids = [d.id for d in await dispute_service.list_disputes(db, status="open")]
    assert open_ids == [still_open.id]
    by_booking = await dispute_service.list_disputes(db, booking_id=first.id)
    assert [d.id for d in by_booking] == [resolved.id]
