"""Cancellation refund policies.

Each policy is an ordered table of ``(threshold, fraction)`` tiers in a fixed
time unit. Tiers are evaluated top-down and the first tier whose threshold is
strictly exceeded by the time remaining wins; below the lowest threshold the
refund is 0.

Seat bookings use a single table in hours:
- more than 72 hours: 100%
- more than 48 hours: 75%
- more than 24 hours: 50%
- more than 12 hours: 25%

Hirings choose one of three tables in days (Standard, Flexible, Strict).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Tuple

from src.reservations.exceptions import InvalidConfiguration, InvalidWindow

HOURS = "hours"
DAYS = "days"

_UNIT_SECONDS = {
    HOURS: 3600,
    DAYS: 86400,
}


@dataclass(frozen=True)
class RefundPolicy:
    name: str
    unit: str
    tiers: Tuple[Tuple[float, Decimal], ...]

    def percentage(self, time_to_start: float) -> Decimal:
        for threshold, fraction in self.tiers:
            if time_to_start > threshold:
                return fraction
        return Decimal('0')


SEAT_BOOKING_POLICY = "SeatBooking"

REFUND_POLICIES: Dict[str, RefundPolicy] = {
    SEAT_BOOKING_POLICY: RefundPolicy(
        name=SEAT_BOOKING_POLICY,
        unit=HOURS,
        tiers=(
            (72, Decimal('1.00')),
            (48, Decimal('0.75')),
            (24, Decimal('0.50')),
            (12, Decimal('0.25')),
        )
    ),
    "Standard": RefundPolicy(
        name="Standard",
        unit=DAYS,
        tiers=(
            (14, Decimal('0.90')),
            (7, Decimal('0.75')),
            (3, Decimal('0.50')),
            (1, Decimal('0.25')),
        )
    ),
    "Flexible": RefundPolicy(
        name="Flexible",
        unit=DAYS,
        tiers=(
            (7, Decimal('1.00')),
            (3, Decimal('0.80')),
            (1, Decimal('0.50')),
        )
    ),
    "Strict": RefundPolicy(
        name="Strict",
        unit=DAYS,
        tiers=(
            (30, Decimal('0.75')),
            (14, Decimal('0.50')),
            (7, Decimal('0.25')),
        )
    ),
}

HIRING_POLICIES = ("Standard", "Flexible", "Strict")


def get_policy(policy_name: str) -> RefundPolicy:
    policy = REFUND_POLICIES.get(policy_name)
    if policy is None:
        raise InvalidConfiguration(
            f"Unknown cancellation policy: {policy_name}",
            policy=policy_name,
            known_policies=sorted(REFUND_POLICIES)
        )
    return policy


def time_to_start(policy_name: str, start: datetime, now: datetime) -> float:
    """Time remaining until start, in the policy's unit (negative once started)"""
    policy = get_policy(policy_name)
    try:
        remaining = start - now
    except TypeError as e:
        raise InvalidWindow(f"Invalid reservation dates: {e}", start=str(start), now=str(now))
    return remaining.total_seconds() / _UNIT_SECONDS[policy.unit]


def refund_percentage(policy_name: str, time_to_start: float) -> Decimal:
    """Refund fraction in [0, 1] for the given time remaining"""
    return get_policy(policy_name).percentage(time_to_start)
