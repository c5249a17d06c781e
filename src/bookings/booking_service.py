from typing import List, Optional
from datetime import datetime, timedelta
from collections import Counter
import logging
import uuid

from src.config import settings
from src.bookings.schemas import (
    BookingCreateRequest, BookingQuote, BookingUpdateRequest, Passenger, SeatBooking
)
from src.pricing.schemas import BookingFareContext, BookingType, FareBreakdown, PassengerFareInput
from src.reservations.exceptions import InvalidWindow, NotFound, ResourceUnavailable
from src.reservations.lifecycle import ReservationLifecycle
from src.reservations.refund_policy import SEAT_BOOKING_POLICY
from src.reservations.schemas import (
    Actor, Bus, OperationResult, ReservationKind, ReservationStatus, Route,
    StatusHistoryEntry, TimeWindow
)

logger = logging.getLogger(__name__)

# Fields whose change moves the booking's window or bus
WINDOW_FIELDS = {"bus_id", "departure_at", "return_at", "booking_type"}
# Fields whose change affects the fare
PRICING_FIELDS = {"departure_at", "booking_type", "passengers", "is_holiday", "is_seasonal", "promo_code"}
# Optional fields that may be cleared with an explicit null
NULLABLE_FIELDS = {"return_at", "promo_code", "special_requests"}

class BookingService(ReservationLifecycle):
    """Service for managing seat bookings on scheduled routes"""

    kind = ReservationKind.BOOKING
    reference_prefix = "BK"

    def refund_policy_name(self, reservation: SeatBooking) -> str:
        return SEAT_BOOKING_POLICY

    def cancellation_cutoff(self) -> float:
        return settings.BOOKING_CANCELLATION_CUTOFF_HOURS

    # Public operations

    def create_booking(self, request: BookingCreateRequest, actor: Actor) -> OperationResult:
        """Create a new pending booking"""
        return self._run("create", self._create_booking, request, actor)

    def update_booking(self, booking_id: str, request: BookingUpdateRequest, actor: Actor) -> OperationResult:
        """Modify an existing booking"""
        return self._run("update", self._update_booking, booking_id, request, actor)

    def quote_fare(self, quote: BookingQuote) -> OperationResult:
        """Price a prospective booking without reserving anything"""
        return self._run("quote", self._quote_fare, quote)

    # Helpers

    def _get_route(self, route_id: str) -> Route:
        route = self.catalog.get_route(route_id)
        if route is None:
            raise NotFound("Route not found", route_id=route_id)
        return route

    def _booking_window(
        self,
        route: Route,
        departure_at: datetime,
        return_at: Optional[datetime],
        booking_type: BookingType
    ) -> TimeWindow:
        """Departure through arrival of the last leg"""

        last_departure = departure_at
        if booking_type == BookingType.ROUND_TRIP:
            if return_at is None:
                raise InvalidWindow("Round-trip bookings require a return date")
            try:
                if return_at <= departure_at:
                    raise InvalidWindow(
                        "Return date must be after departure date",
                        departure_at=departure_at.isoformat(),
                        return_at=return_at.isoformat()
                    )
            except TypeError as e:
                raise InvalidWindow(f"Invalid booking dates: {e}")
            last_departure = return_at

        arrival = last_departure + timedelta(minutes=route.estimated_duration_minutes)
        return self._validate_window(departure_at, arrival)

    def _check_passengers(self, bus: Bus, passengers: List[Passenger]):
        """Seats must be distinct and fit the bus"""

        if len(passengers) > bus.capacity:
            raise ResourceUnavailable(
                f"Bus {bus.bus_number} has only {bus.capacity} seats",
                bus_id=bus.id,
                capacity=bus.capacity,
                requested=len(passengers)
            )

        seat_counts = Counter(p.seat_number for p in passengers)
        duplicates = sorted(seat for seat, count in seat_counts.items() if count > 1)
        if duplicates:
            raise ResourceUnavailable(
                "Some seats are selected more than once",
                bus_id=bus.id,
                seats=duplicates
            )

    def _price(
        self,
        route: Route,
        departure_at: datetime,
        booking_type: BookingType,
        passengers: List[Passenger],
        is_holiday: bool,
        is_seasonal: bool,
        promo_code: Optional[str]
    ) -> FareBreakdown:
        context = BookingFareContext(
            departure_at=departure_at,
            booking_type=booking_type,
            passengers=[
                PassengerFareInput(passenger_type=p.passenger_type, stop_point=p.stop_point)
                for p in passengers
            ],
            is_holiday=is_holiday,
            is_seasonal=is_seasonal,
            promo_code=promo_code
        )
        return self.fare_service.calculate_booking_fare(route, context)

    def _reprice(self, booking: SeatBooking, route: Route):
        breakdown = self._price(
            route,
            booking.departure_at,
            booking.booking_type,
            booking.passengers,
            booking.is_holiday,
            booking.is_seasonal,
            booking.promo_code
        )
        booking.fare_breakdown = breakdown
        booking.total_amount = breakdown.total

    # Operations

    def _quote_fare(self, quote: BookingQuote) -> FareBreakdown:
        route = self._get_route(quote.route_id)
        passengers = quote.passengers or [Passenger(name="Passenger", seat_number="-")]
        return self._price(
            route,
            quote.departure_at,
            quote.booking_type,
            passengers,
            quote.is_holiday,
            quote.is_seasonal,
            quote.promo_code
        )

    def _create_booking(self, request: BookingCreateRequest, actor: Actor) -> SeatBooking:
        route = self._get_route(request.route_id)
        bus = self._require_active_bus(request.bus_id)
        self._check_passengers(bus, request.passengers)

        window = self._booking_window(route, request.departure_at, request.return_at, request.booking_type)
        is_round_trip = request.booking_type == BookingType.ROUND_TRIP

        now = self.clock.now()
        booking = SeatBooking(
            id=str(uuid.uuid4()),
            reference=self._new_reference(),
            user_id=actor.user_id,
            bus_id=bus.id,
            window=window,
            route_id=route.id,
            departure_at=request.departure_at,
            return_at=request.return_at if is_round_trip else None,
            booking_type=request.booking_type,
            passengers=request.passengers,
            is_holiday=request.is_holiday,
            is_seasonal=request.is_seasonal,
            promo_code=request.promo_code,
            special_requests=request.special_requests,
            status_history=[StatusHistoryEntry(
                status=ReservationStatus.PENDING,
                at=now,
                notes="Booking created",
                actor_id=actor.user_id
            )],
            created_at=now,
            updated_at=now
        )
        self._reprice(booking, route)

        return self._insert(booking)

    def _update_booking(self, booking_id: str, request: BookingUpdateRequest, actor: Actor) -> SeatBooking:
        with self.locks.reservations.hold(booking_id):
            booking = self._load(booking_id)
            self._require_modifiable(booking, actor)

            previous_bus_id = booking.bus_id
            changed = set()
            for field in request.model_fields_set:
                value = getattr(request, field)
                if value is None and field not in NULLABLE_FIELDS:
                    continue
                setattr(booking, field, value)
                changed.add(field)

            if not changed:
                return booking

            route = self._get_route(booking.route_id)
            if booking.bus_id != previous_bus_id:
                bus = self._require_active_bus(booking.bus_id)
            else:
                bus = self.catalog.get_bus(booking.bus_id)
            if bus is not None and changed & {"bus_id", "passengers"}:
                self._check_passengers(bus, booking.passengers)

            recheck = bool(changed & WINDOW_FIELDS)
            if recheck:
                booking.window = self._booking_window(
                    route, booking.departure_at, booking.return_at, booking.booking_type
                )
                if booking.booking_type == BookingType.ONE_WAY:
                    booking.return_at = None

            if changed & PRICING_FIELDS:
                previous_total = booking.total_amount
                self._reprice(booking, route)
                self._refresh_payment_status(booking)
                logger.info(
                    "Repriced booking %s: %s -> %s",
                    booking.reference, previous_total, booking.total_amount
                )

            booking.updated_at = self.clock.now()
            self._commit_update(booking, previous_bus_id, recheck)

        return booking
