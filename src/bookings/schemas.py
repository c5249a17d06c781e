from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime

from src.config import settings
from src.pricing.schemas import BookingType, FareBreakdown, PassengerType
from src.reservations.clock import to_utc_naive
from src.reservations.schemas import Reservation, ReservationKind

# Passenger Information
class Passenger(BaseModel):
    """Individual passenger holding one seat.

    When ``passenger_type`` is omitted it is derived from ``age`` (child,
    senior or adult), falling back to adult when no age is given.
    """
    name: str
    seat_number: str
    age: Optional[int] = None
    passenger_type: Optional[PassengerType] = None
    stop_point: Optional[str] = None  # Alight at an intermediate stop

    @validator('age')
    def validate_age(cls, v):
        if v is not None and not 0 <= v <= 120:
            raise ValueError('Age must be between 0 and 120')
        return v

    @validator('passenger_type', always=True)
    def resolve_passenger_type(cls, v, values):
        if v is not None:
            return v
        age = values.get('age')
        if age is None:
            return PassengerType.ADULT
        if age <= settings.CHILD_MAX_AGE:
            return PassengerType.CHILD
        if age >= settings.SENIOR_MIN_AGE:
            return PassengerType.SENIOR
        return PassengerType.ADULT

# Booking Model
class SeatBooking(Reservation):
    """Seat booking on a scheduled route"""
    kind: ReservationKind = ReservationKind.BOOKING
    route_id: str
    departure_at: datetime
    return_at: Optional[datetime] = None
    booking_type: BookingType = BookingType.ONE_WAY
    passengers: List[Passenger]
    is_holiday: bool = False
    is_seasonal: bool = False
    promo_code: Optional[str] = None
    special_requests: Optional[str] = None
    fare_breakdown: Optional[FareBreakdown] = None

# Booking Request Models
class BookingCreateRequest(BaseModel):
    """Request to book seats on a route"""
    route_id: str
    bus_id: str
    departure_at: datetime
    return_at: Optional[datetime] = None
    booking_type: BookingType = BookingType.ONE_WAY
    passengers: List[Passenger]
    is_holiday: bool = False
    is_seasonal: bool = False
    promo_code: Optional[str] = None
    special_requests: Optional[str] = None

    @validator('passengers')
    def validate_passengers(cls, v):
        if not v or len(v) == 0:
            raise ValueError('At least one passenger is required')
        return v

    @validator('departure_at', 'return_at')
    def normalize_instant(cls, v):
        return to_utc_naive(v)

class BookingUpdateRequest(BaseModel):
    """Changes to an existing booking; omitted fields stay as they are"""
    bus_id: Optional[str] = None
    departure_at: Optional[datetime] = None
    return_at: Optional[datetime] = None
    booking_type: Optional[BookingType] = None
    passengers: Optional[List[Passenger]] = None
    is_holiday: Optional[bool] = None
    is_seasonal: Optional[bool] = None
    promo_code: Optional[str] = None
    special_requests: Optional[str] = None

    @validator('passengers')
    def validate_passengers(cls, v):
        if v is not None and len(v) == 0:
            raise ValueError('At least one passenger is required')
        return v

    @validator('departure_at', 'return_at')
    def normalize_instant(cls, v):
        return to_utc_naive(v)

class BookingQuote(BaseModel):
    """Fare quote without creating a booking"""
    route_id: str
    departure_at: datetime
    booking_type: BookingType = BookingType.ONE_WAY
    passengers: List[Passenger] = Field(default_factory=list)
    is_holiday: bool = False
    is_seasonal: bool = False
    promo_code: Optional[str] = None

    @validator('departure_at')
    def normalize_instant(cls, v):
        return to_utc_naive(v)
