"""
Pricing Module

Fare calculation for seat bookings (route base fare, time-of-travel
multipliers, passenger discounts, round trips and promo codes) and cost
calculation for bus hirings (rate basis, driver allowance, overtime,
additional services and charges).
"""

from .fare_service import FareCalculationService
from .schemas import (
    PassengerType, BookingType, RateBasis, BookingFareContext, HiringCostContext,
    AdditionalCharge, FareBreakdown, FareLine
)

__all__ = [
    "FareCalculationService",
    "PassengerType",
    "BookingType",
    "RateBasis",
    "BookingFareContext",
    "HiringCostContext",
    "AdditionalCharge",
    "FareBreakdown",
    "FareLine"
]
