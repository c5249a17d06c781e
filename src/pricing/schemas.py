from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.config import settings

class PassengerType(str, Enum):
    """Passenger category used for discounts"""
    ADULT = "adult"
    CHILD = "child"
    SENIOR = "senior"

class BookingType(str, Enum):
    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"

class RateBasis(str, Enum):
    """Unit a hiring's base cost is computed against"""
    PER_DAY = "per_day"
    PER_HOUR = "per_hour"
    PER_KILOMETER = "per_kilometer"
    FIXED = "fixed"

# Calculation inputs
class PassengerFareInput(BaseModel):
    passenger_type: PassengerType = PassengerType.ADULT
    stop_point: Optional[str] = None

class BookingFareContext(BaseModel):
    """Situational factors for a scheduled seat booking"""
    departure_at: datetime
    booking_type: BookingType = BookingType.ONE_WAY
    passengers: List[PassengerFareInput]
    is_holiday: bool = False
    is_seasonal: bool = False
    promo_code: Optional[str] = None

class AdditionalCharge(BaseModel):
    """Free-form flat charge added to a hiring"""
    description: str
    amount: Decimal

class HiringCostContext(BaseModel):
    """Inputs for pricing a whole-bus hiring.

    ``rate_basis`` is kept as a plain string so that an unknown basis reaches
    the calculator and is reported as a configuration error.
    """
    start_at: datetime
    end_at: datetime
    rate_basis: str = RateBasis.PER_DAY.value
    passenger_count: int = 1
    estimated_distance_km: Decimal = Decimal('0')
    driver_allowance: Decimal = Decimal('0')
    overtime_rate: Decimal = Decimal('0')
    additional_services: List[str] = Field(default_factory=list)
    additional_charges: List[AdditionalCharge] = Field(default_factory=list)
    is_round_trip: bool = False

# Calculation outputs
class FareLine(BaseModel):
    """One priced component (a passenger, the base cost, a service, ...)"""
    description: str
    amount: Decimal
    factors: Dict[str, Decimal] = Field(default_factory=dict)

class FareBreakdown(BaseModel):
    """Result of a fare or hiring cost computation"""
    total: Decimal
    base: Decimal
    applied_factors: Dict[str, Decimal] = Field(default_factory=dict)
    lines: List[FareLine] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    currency: str = Field(default_factory=lambda: settings.CURRENCY)
