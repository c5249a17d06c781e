"""Pricing configuration tables.

Fees, promo codes and time bands are data consumed by the fare calculator;
adding a service or a promo code means adding an entry here, not a branch in
the calculator.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, FrozenSet


@dataclass(frozen=True)
class ServiceQuantities:
    """Billable quantities of a hiring that service fees scale with"""
    days: int
    hours: int
    passengers: int


ServiceFee = Callable[[ServiceQuantities], Decimal]


def per_day(rate: str) -> ServiceFee:
    amount = Decimal(rate)
    return lambda quantities: amount * quantities.days


def per_passenger_per_day(rate: str) -> ServiceFee:
    amount = Decimal(rate)
    return lambda quantities: amount * quantities.passengers * quantities.days


def flat(fee: str) -> ServiceFee:
    amount = Decimal(fee)
    return lambda quantities: amount


SERVICE_FEES: Dict[str, ServiceFee] = {
    "driver": per_day("150"),
    "food": per_passenger_per_day("50"),
    "guide": per_day("200"),
    "wifi": flat("100"),
}

PROMO_CODES: Dict[str, Decimal] = {
    "WELCOME10": Decimal('0.10'),
}

# Departure hours (inclusive) charged at the peak multiplier
PEAK_HOURS: FrozenSet[int] = frozenset(range(7, 10)) | frozenset(range(16, 20))

# datetime.weekday(): Saturday = 5, Sunday = 6
WEEKEND_DAYS: FrozenSet[int] = frozenset({5, 6})
