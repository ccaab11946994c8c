"""HTTP tests for the public API."""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from trailhead.config import settings

API = "/api/v1"


def _actor(actor_id, role):
    return {"id": str(actor_id), "role": role}


def _query(actor_id, role):
    return {"actor_id": str(actor_id), "actor_role": role}


@pytest.fixture
def guide_id():
    return uuid.uuid4()


@pytest.fixture
def customer_id():
    return uuid.uuid4()


@pytest.fixture
def admin_id():
    return uuid.uuid4()


async def _create_trip(client, guide_id, spots=10, instant=True, price="150.00"):
    response = await client.post(
        f"{API}/trips",
        json={
            "actor": _actor(guide_id, "guide"),
            "title": "Glacier Crossing",
            "price_per_person": price,
            "max_group_size": 10,
            "is_instant_book": instant,
        },
    )
    assert response.status_code == 201, response.text
    trip = response.json()

    start = date.today() + timedelta(days=30)
    response = await client.post(
        f"{API}/trips/{trip['id']}/dates",
        json={
            "actor": _actor(guide_id, "guide"),
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=2)).isoformat(),
            "spots_total": spots,
        },
    )
    assert response.status_code == 201, response.text
    return trip, response.json()


async def _create_booking(client, trip, trip_date, customer_id, count=3):
    response = await client.post(
        f"{API}/bookings",
        json={
            "actor": _actor(customer_id, "customer"),
            "trip_id": trip["id"],
            "trip_date_id": trip_date["id"],
            "participant_count": count,
        },
    )
    return response


async def _paid_booking(client, guide_id, customer_id):
    trip, trip_date = await _create_trip(client, guide_id)
    response = await _create_booking(client, trip, trip_date, customer_id)
    assert response.status_code == 201, response.text
    booking = response.json()
    response = await client.post(
        f"{API}/bookings/{booking['id']}/pay",
        json={"actor": _actor(customer_id, "customer")},
    )
    assert response.status_code == 200, response.text
    return trip, trip_date, response.json()


async def test_health(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"] == "req-1"
    assert "X-Response-Time" in response.headers


async def test_create_trip_requires_guide(client, customer_id):
    response = await client.post(
        f"{API}/trips",
        json={
            "actor": _actor(customer_id, "customer"),
            "title": "Not allowed",
            "price_per_person": "10",
            "max_group_size": 4,
        },
    )
    assert response.status_code == 403


async def test_trip_detail_lists_dates(client, guide_id):
    trip, trip_date = await _create_trip(client, guide_id)

    response = await client.get(f"{API}/trips/{trip['id']}")

    assert response.status_code == 200
    body = response.json()
    assert [d["id"] for d in body["dates"]] == [trip_date["id"]]
    assert body["dates"][0]["spots_available"] == 10


async def test_quote(client, guide_id):
    trip, trip_date = await _create_trip(client, guide_id)

    response = await client.post(
        f"{API}/bookings/quote",
        json={"trip_id": trip["id"], "trip_date_id": trip_date["id"], "participant_count": 3},
    )

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total_price"]) == Decimal("450.00")
    assert Decimal(body["commission_amount"]) == Decimal("54.00")
    assert Decimal(body["hosting_fee"]) == Decimal("1.00")
    assert Decimal(body["guide_payout"]) == Decimal("395.00")


async def test_booking_flow(client, guide_id, customer_id):
    trip, trip_date, booking = await _paid_booking(client, guide_id, customer_id)

    assert booking["status"] == "confirmed"
    assert booking["payment_status"] == "paid"
    assert Decimal(booking["total_price"]) == Decimal("450.00")

    response = await client.get(
        f"{API}/bookings/{booking['id']}", params=_query(customer_id, "customer")
    )
    assert response.status_code == 200

    response = await client.get(
        f"{API}/bookings/{booking['id']}", params=_query(uuid.uuid4(), "customer")
    )
    assert response.status_code == 403

    response = await client.post(
        f"{API}/bookings/{booking['id']}/cancel",
        json={"actor": _actor(customer_id, "customer"), "reason": "Injury"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["payment_status"] == "refunded"
    assert Decimal(body["refund_amount"]) == Decimal("450.00")

    response = await client.get(f"{API}/trips/{trip['id']}")
    assert response.json()["dates"][0]["spots_available"] == 10


async def test_pending_booking_confirmed_by_guide(client, guide_id, customer_id):
    trip, trip_date = await _create_trip(client, guide_id, instant=False)
    booking = (await _create_booking(client, trip, trip_date, customer_id, count=1)).json()
    assert booking["status"] == "pending"

    response = await client.post(
        f"{API}/bookings/{booking['id']}/confirm",
        json={"actor": _actor(uuid.uuid4(), "guide")},
    )
    assert response.status_code == 403

    response = await client.post(
        f"{API}/bookings/{booking['id']}/confirm",
        json={"actor": _actor(guide_id, "guide")},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = await client.post(
        f"{API}/bookings/{booking['id']}/confirm",
        json={"actor": _actor(guide_id, "guide")},
    )
    assert response.status_code == 409


async def test_complete_before_trip_end_conflicts(client, guide_id, customer_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)

    response = await client.post(
        f"{API}/bookings/{booking['id']}/complete",
        json={"actor": _actor(guide_id, "guide")},
    )
    assert response.status_code == 409


async def test_overbooking_conflicts(client, guide_id, customer_id):
    trip, trip_date = await _create_trip(client, guide_id, spots=2)

    response = await _create_booking(client, trip, trip_date, customer_id, count=3)

    assert response.status_code == 409


async def test_invalid_participant_count(client, guide_id, customer_id):
    trip, trip_date = await _create_trip(client, guide_id)

    response = await _create_booking(client, trip, trip_date, customer_id, count=0)

    assert response.status_code == 422


async def test_refund_failure_returns_bad_gateway(client, processor, guide_id, customer_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)
    processor.refund_outcomes = ["failed"]

    response = await client.post(
        f"{API}/bookings/{booking['id']}/cancel",
        json={"actor": _actor(customer_id, "customer")},
    )
    assert response.status_code == 502

    response = await client.get(
        f"{API}/bookings/{booking['id']}", params=_query(customer_id, "customer")
    )
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["refund_status"] == "failed"


async def test_refund_timeout_returns_gateway_timeout(
    client, processor, guide_id, customer_id, monkeypatch
):
    monkeypatch.setattr(settings, "payment_timeout_seconds", 0.05)
    _, _, booking = await _paid_booking(client, guide_id, customer_id)
    processor.refund_outcomes = ["timeout"]

    response = await client.post(
        f"{API}/bookings/{booking['id']}/cancel",
        json={"actor": _actor(customer_id, "customer")},
    )
    assert response.status_code == 504

    response = await client.post(
        f"{API}/bookings/{booking['id']}/cancel",
        json={"actor": _actor(customer_id, "customer")},
    )
    assert response.status_code == 200
    assert processor.refunds[0]["idempotency_key"] == processor.refunds[1]["idempotency_key"]


async def test_dispute_flow(client, guide_id, customer_id, admin_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)

    response = await client.post(
        f"{API}/disputes",
        json={
            "actor": _actor(customer_id, "customer"),
            "booking_id": booking["id"],
            "reason": "not_as_described",
            "description": "The glacier was a parking lot",
        },
    )
    assert response.status_code == 201, response.text
    dispute = response.json()

    response = await client.post(
        f"{API}/disputes",
        json={
            "actor": _actor(customer_id, "customer"),
            "booking_id": booking["id"],
            "reason": "other",
            "description": "Second try",
        },
    )
    assert response.status_code == 409

    response = await client.get(f"{API}/disputes", params={**_query(admin_id, "admin"), "status": "open"})
    assert [d["id"] for d in response.json()] == [dispute["id"]]

    resolve = {
        "actor": _actor(admin_id, "admin"),
        "resolution": "approved",
        "refund_amount": "100.00",
    }
    response = await client.post(f"{API}/disputes/{dispute['id']}/resolve", json=resolve)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "resolved"
    assert Decimal(body["refund_amount"]) == Decimal("100.00")
    assert body["refund_status"] == "completed"

    response = await client.post(f"{API}/disputes/{dispute['id']}/resolve", json=resolve)
    assert response.status_code == 409

    response = await client.get(
        f"{API}/bookings/{booking['id']}", params=_query(customer_id, "customer")
    )
    assert response.json()["payment_status"] == "refunded"
    assert Decimal(response.json()["refund_amount"]) == Decimal("100.00")

    response = await client.get(f"{API}/admin/finance-health", params=_query(admin_id, "admin"))
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


async def test_dispute_hidden_from_strangers(client, guide_id, customer_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)
    dispute = (
        await client.post(
            f"{API}/disputes",
            json={
                "actor": _actor(customer_id, "customer"),
                "booking_id": booking["id"],
                "reason": "other",
                "description": "Late start",
            },
        )
    ).json()

    response = await client.get(f"{API}/disputes/{dispute['id']}", params=_query(guide_id, "guide"))
    assert response.status_code == 200
    response = await client.get(
        f"{API}/disputes/{dispute['id']}", params=_query(uuid.uuid4(), "customer")
    )
    assert response.status_code == 404


async def test_resolve_requires_admin(client, guide_id, customer_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)
    dispute = (
        await client.post(
            f"{API}/disputes",
            json={
                "actor": _actor(customer_id, "customer"),
                "booking_id": booking["id"],
                "reason": "other",
                "description": "Late start",
            },
        )
    ).json()

    response = await client.post(
        f"{API}/disputes/{dispute['id']}/resolve",
        json={"actor": _actor(guide_id, "guide"), "resolution": "denied"},
    )
    assert response.status_code == 403


async def test_referral_settings(client, guide_id):
    trip, _ = await _create_trip(client, guide_id)

    response = await client.put(
        f"{API}/trips/{trip['id']}/referral-settings",
        json={"actor": _actor(guide_id, "guide"), "referral_payout_percent": "1.5"},
    )
    assert response.status_code == 200
    assert Decimal(response.json()["referral_payout_percent"]) == Decimal("1.5")

    response = await client.put(
        f"{API}/trips/{trip['id']}/referral-settings",
        json={"actor": _actor(guide_id, "guide"), "referral_payout_percent": "2.5"},
    )
    assert response.status_code == 422

    response = await client.get(f"{API}/trips/{trip['id']}/referral-settings")
    assert Decimal(response.json()["referral_payout_percent"]) == Decimal("1.5")


async def test_referral_earnings_visible_to_referrer_only(client, customer_id, admin_id):
    response = await client.get(
        f"{API}/referrals/earnings",
        params={"referrer_id": str(customer_id), **_query(customer_id, "customer")},
    )
    assert response.status_code == 200
    assert response.json() == []

    response = await client.get(
        f"{API}/referrals/earnings",
        params={"referrer_id": str(customer_id), **_query(uuid.uuid4(), "customer")},
    )
    assert response.status_code == 403

    response = await client.get(f"{API}/referrals/payable", params=_query(admin_id, "admin"))
    assert response.status_code == 200


async def test_admin_endpoints_reject_non_admins(client, customer_id):
    response = await client.get(f"{API}/admin/finance-health", params=_query(customer_id, "customer"))
    assert response.status_code == 403


async def test_recorded_health_runs(client, admin_id):
    response = await client.get(
        f"{API}/admin/finance-health", params={**_query(admin_id, "admin"), "record": "true"}
    )
    assert response.status_code == 200
    run_id = response.json()["run_id"]
    assert run_id is not None

    response = await client.get(f"{API}/admin/finance-health/runs", params=_query(admin_id, "admin"))
    assert [run["run_id"] for run in response.json()] == [run_id]


async def test_audit_trail_endpoint(client, guide_id, customer_id, admin_id):
    _, _, booking = await _paid_booking(client, guide_id, customer_id)

    response = await client.get(
        f"{API}/admin/audit-logs/booking/{booking['id']}", params=_query(admin_id, "admin")
    )
    assert response.status_code == 200
    actions = [entry["action"] for entry in response.json()]
    assert "booking_create" in actions
    assert "booking_pay" in actions


async def test_cancellation_policy_endpoint(client):
    response = await client.get(f"{API}/admin/cancellation-policy")
    assert response.status_code == 200
    assert "Full refund" in response.json()["policy"]
