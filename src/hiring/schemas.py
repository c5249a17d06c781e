from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from src.pricing.schemas import AdditionalCharge, FareBreakdown, RateBasis
from src.reservations.clock import to_utc_naive
from src.reservations.schemas import Reservation, ReservationKind

class BusHiring(Reservation):
    """Whole-bus hiring contract"""
    kind: ReservationKind = ReservationKind.HIRING
    start_at: datetime
    end_at: datetime
    passenger_count: int
    rate_basis: str = RateBasis.PER_DAY.value
    base_rate: Decimal
    estimated_distance_km: Decimal = Decimal('0')
    driver_allowance: Decimal = Decimal('0')
    overtime_rate: Decimal = Decimal('0')
    additional_services: List[str] = Field(default_factory=list)
    additional_charges: List[AdditionalCharge] = Field(default_factory=list)
    is_round_trip: bool = False
    deposit: Decimal = Decimal('0')
    cancellation_policy: str = "Standard"
    purpose: Optional[str] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    cost_breakdown: Optional[FareBreakdown] = None

class HiringCreateRequest(BaseModel):
    """Request to hire a whole bus"""
    bus_id: str
    start_at: datetime
    end_at: datetime
    passenger_count: int
    rate_basis: str = RateBasis.PER_DAY.value
    base_rate: Optional[Decimal] = None  # Defaults to the bus's published rate
    estimated_distance_km: Decimal = Decimal('0')
    driver_allowance: Decimal = Decimal('0')
    overtime_rate: Decimal = Decimal('0')
    additional_services: List[str] = Field(default_factory=list)
    additional_charges: List[AdditionalCharge] = Field(default_factory=list)
    is_round_trip: bool = False
    deposit: Decimal = Decimal('0')
    cancellation_policy: str = "Standard"
    purpose: Optional[str] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None

    @validator('passenger_count')
    def validate_passenger_count(cls, v):
        if v < 1:
            raise ValueError('Number of passengers must be at least 1')
        return v

    @validator('start_at', 'end_at')
    def normalize_instant(cls, v):
        return to_utc_naive(v)

    @validator('deposit', 'driver_allowance', 'overtime_rate')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Amount cannot be negative')
        return v

class HiringUpdateRequest(BaseModel):
    """Changes to an existing hiring; omitted fields stay as they are"""
    bus_id: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    passenger_count: Optional[int] = None
    rate_basis: Optional[str] = None
    base_rate: Optional[Decimal] = None
    estimated_distance_km: Optional[Decimal] = None
    driver_allowance: Optional[Decimal] = None
    overtime_rate: Optional[Decimal] = None
    additional_services: Optional[List[str]] = None
    additional_charges: Optional[List[AdditionalCharge]] = None
    is_round_trip: Optional[bool] = None
    deposit: Optional[Decimal] = None
    cancellation_policy: Optional[str] = None
    purpose: Optional[str] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None

    @validator('passenger_count')
    def validate_passenger_count(cls, v):
        if v is not None and v < 1:
            raise ValueError('Number of passengers must be at least 1')
        return v

    @validator('start_at', 'end_at')
    def normalize_instant(cls, v):
        return to_utc_naive(v)
