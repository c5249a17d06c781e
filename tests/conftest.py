import os

# Keep the application engine off the on-disk default during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.bookings.booking_service import BookingService
from src.bookings.schemas import BookingCreateRequest, Passenger
from src.hiring.hiring_service import HiringService
from src.hiring.schemas import HiringCreateRequest
from src.reservations.clock import FixedClock
from src.reservations.events import RecordingEventSink
from src.reservations.repository import InMemoryBusCatalog, InMemoryReservationRepository
from src.reservations.schemas import Actor, ActorRole, Bus, BusStatus, HiringRates, Route

# Monday, outside peak hours
NOW = datetime(2026, 10, 5, 12, 0)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def bus():
    return Bus(
        id="bus-1",
        bus_number="BUS-001",
        capacity=40,
        hiring_rates=HiringRates(
            daily_rate=Decimal("500"),
            hourly_rate=Decimal("80"),
            per_kilometer=Decimal("4")
        )
    )


@pytest.fixture
def route():
    return Route(
        id="route-1",
        name="Central Station - Airport",
        base_fare=Decimal("100"),
        estimated_duration_minutes=120,
        peak_time_multiplier=Decimal("1.5"),
        weekend_multiplier=Decimal("1.2"),
        holiday_multiplier=Decimal("1.3"),
        seasonal_multiplier=Decimal("1.1"),
        child_discount=Decimal("0.5"),
        senior_discount=Decimal("0.3"),
        stop_points={"Midway": Decimal("60")}
    )


@pytest.fixture
def catalog(bus, route):
    return InMemoryBusCatalog(
        buses=[
            bus,
            Bus(id="bus-2", bus_number="BUS-002", capacity=2),
            Bus(id="bus-3", bus_number="BUS-003", capacity=40, status=BusStatus.MAINTENANCE),
        ],
        routes=[route]
    )


@pytest.fixture
def repository():
    return InMemoryReservationRepository()


@pytest.fixture
def booking_service(repository, catalog, clock, events):
    return BookingService(repository, catalog, clock=clock, events=events)


@pytest.fixture
def hiring_service(repository, catalog, clock, events):
    return HiringService(repository, catalog, clock=clock, events=events)


@pytest.fixture
def owner():
    return Actor(user_id="user-1")


@pytest.fixture
def other_user():
    return Actor(user_id="user-2")


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def booking_request():
    """Build a booking request; departure defaults to 74 hours from NOW (Thursday 14:00)"""

    def build(departure_at=None, passengers=2, **overrides):
        if isinstance(passengers, int):
            passengers = [
                Passenger(name=f"Passenger {i + 1}", seat_number=f"A{i + 1}")
                for i in range(passengers)
            ]
        data = {
            "route_id": "route-1",
            "bus_id": "bus-1",
            "departure_at": departure_at or NOW + timedelta(hours=74),
            "passengers": passengers,
        }
        data.update(overrides)
        return BookingCreateRequest(**data)

    return build


@pytest.fixture
def hiring_request():
    """Build a hiring request; by default a three-day hire starting ten days from NOW"""

    def build(start_at=None, duration=timedelta(days=3), **overrides):
        start_at = start_at or NOW + timedelta(days=10)
        data = {
            "bus_id": "bus-1",
            "start_at": start_at,
            "end_at": start_at + duration,
            "passenger_count": 30,
        }
        data.update(overrides)
        return HiringCreateRequest(**data)

    return build
