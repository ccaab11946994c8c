"""Tests for the cancellation refund policy."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from trailhead.core.exceptions import InvalidInput
from trailhead.domain.cancellation_policy import (
    calculate_refund_amount,
    calculate_refund_percentage,
    days_until_trip_start,
    get_policy_description,
    validate_override_amount,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_days_until_start_rounds_up():
    assert days_until_trip_start(date(2026, 1, 11), NOW) == 10
    assert days_until_trip_start(date(2026, 1, 6), NOW) == 5
    assert days_until_trip_start(date(2026, 1, 2), NOW) == 1


def test_days_until_start_accepts_naive_now():
    assert days_until_trip_start(date(2026, 1, 11), NOW.replace(tzinfo=None)) == 10


def test_days_until_start_negative_after_start():
    assert days_until_trip_start(date(2025, 12, 30), NOW) < 0


@pytest.mark.parametrize(
    "days,expected",
    [(30, "100"), (8, "100"), (7, "50"), (4, "50"), (3, "0"), (0, "0"), (-2, "0")],
)
def test_refund_percentage_tiers(days, expected):
    assert calculate_refund_percentage(days) == Decimal(expected)


@pytest.mark.parametrize("days,expected", [(10, "450.00"), (5, "225.00"), (1, "0.00")])
def test_refund_amount_for_450_booking(days, expected):
    assert calculate_refund_amount(Decimal("450.00"), days) == Decimal(expected)


def test_refund_amount_capped_by_earlier_refunds():
    assert calculate_refund_amount(Decimal("450.00"), 10, Decimal("400.00")) == Decimal("50.00")


def test_override_within_bounds():
    assert validate_override_amount(Decimal("100"), Decimal("450.00")) == Decimal("100.00")
    assert validate_override_amount(Decimal("0"), Decimal("450.00")) == Decimal("0.00")
    assert validate_override_amount(Decimal("450.00"), Decimal("450.00")) == Decimal("450.00")


@pytest.mark.parametrize("override", ["-0.01", "450.01"])
def test_override_out_of_bounds(override):
    with pytest.raises(InvalidInput):
        validate_override_amount(Decimal(override), Decimal("450.00"))


def test_override_limited_to_unrefunded_balance():
    with pytest.raises(InvalidInput):
        validate_override_amount(Decimal("100.00"), Decimal("450.00"), Decimal("400.00"))


def test_policy_description_mentions_tiers():
    description = get_policy_description()
    assert "7 days" in description
    assert "50%" in description
