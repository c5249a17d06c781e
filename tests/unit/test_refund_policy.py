from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.reservations.exceptions import InvalidConfiguration, InvalidWindow
from src.reservations.refund_policy import (
    REFUND_POLICIES, SEAT_BOOKING_POLICY, get_policy, refund_percentage, time_to_start
)


@pytest.mark.parametrize("hours,expected", [
    (100, "1.00"),
    (72.5, "1.00"),
    (72, "0.75"),
    (50, "0.75"),
    (30, "0.50"),
    (24, "0.25"),
    (13, "0.25"),
    (12, "0"),
    (-5, "0"),
])
def test_seat_booking_tiers(hours, expected):
    assert refund_percentage(SEAT_BOOKING_POLICY, hours) == Decimal(expected)


@pytest.mark.parametrize("policy,days,expected", [
    ("Standard", 20, "0.90"),
    ("Standard", 10, "0.75"),
    ("Standard", 5, "0.50"),
    ("Standard", 2, "0.25"),
    ("Standard", 0.5, "0"),
    ("Flexible", 8, "1.00"),
    ("Flexible", 4, "0.80"),
    ("Flexible", 2, "0.50"),
    ("Strict", 31, "0.75"),
    ("Strict", 20, "0.50"),
    ("Strict", 10, "0.25"),
    ("Strict", 5, "0"),
])
def test_hiring_policy_tiers(policy, days, expected):
    assert refund_percentage(policy, days) == Decimal(expected)


@pytest.mark.parametrize("policy_name", sorted(REFUND_POLICIES))
def test_refund_never_decreases_with_more_notice(policy_name):
    previous = Decimal("0")
    for step in range(-10, 800):
        percentage = refund_percentage(policy_name, step / 10)
        assert Decimal("0") <= percentage <= Decimal("1")
        assert percentage >= previous
        previous = percentage


def test_time_to_start_uses_policy_unit():
    now = datetime(2026, 10, 5, 12, 0)
    start = now + timedelta(days=2)

    assert time_to_start(SEAT_BOOKING_POLICY, start, now) == pytest.approx(48)
    assert time_to_start("Standard", start, now) == pytest.approx(2)


def test_unknown_policy_is_a_configuration_error():
    with pytest.raises(InvalidConfiguration):
        get_policy("Lenient")


def test_mixing_aware_and_naive_instants_is_an_invalid_window():
    start = datetime(2026, 10, 8, 12, 0, tzinfo=timezone.utc)
    with pytest.raises(InvalidWindow):
        time_to_start(SEAT_BOOKING_POLICY, start, datetime(2026, 10, 5, 12, 0))
