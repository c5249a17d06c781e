from typing import Optional
from decimal import Decimal
import logging
import uuid

from src.config import settings
from src.hiring.schemas import BusHiring, HiringCreateRequest, HiringUpdateRequest
from src.pricing.schemas import FareBreakdown, HiringCostContext, RateBasis
from src.reservations.exceptions import InvalidConfiguration, InvalidWindow, ResourceUnavailable
from src.reservations.lifecycle import ReservationLifecycle
from src.reservations.refund_policy import HIRING_POLICIES
from src.reservations.schemas import (
    Actor, Bus, HiringRates, OperationResult, ReservationKind, ReservationStatus,
    StatusHistoryEntry, TimeWindow
)

logger = logging.getLogger(__name__)

WINDOW_FIELDS = {"bus_id", "start_at", "end_at"}
PRICING_FIELDS = {
    "start_at", "end_at", "passenger_count", "rate_basis", "base_rate",
    "estimated_distance_km", "driver_allowance", "overtime_rate",
    "additional_services", "additional_charges", "is_round_trip"
}
NULLABLE_FIELDS = {"purpose", "start_location", "end_location"}

class HiringService(ReservationLifecycle):
    """Service for managing whole-bus hiring contracts"""

    kind = ReservationKind.HIRING
    reference_prefix = "HIR"
    auto_confirm_from = frozenset({ReservationStatus.PENDING, ReservationStatus.APPROVED})

    def refund_policy_name(self, reservation: BusHiring) -> str:
        return reservation.cancellation_policy

    def confirmation_threshold(self, reservation: BusHiring) -> Decimal:
        """Paying the deposit confirms a hiring; without a deposit the full cost is due"""
        if reservation.deposit > 0:
            return min(reservation.deposit, reservation.total_amount)
        return reservation.total_amount

    def cancellation_cutoff(self) -> float:
        return settings.HIRING_CANCELLATION_CUTOFF_DAYS

    # Public operations

    def create_hiring(self, request: HiringCreateRequest, actor: Actor) -> OperationResult:
        """Create a new pending hiring request"""
        return self._run("create", self._create_hiring, request, actor)

    def update_hiring(self, hiring_id: str, request: HiringUpdateRequest, actor: Actor) -> OperationResult:
        """Modify an existing hiring request"""
        return self._run("update", self._update_hiring, hiring_id, request, actor)

    def quote_cost(self, request: HiringCreateRequest) -> OperationResult:
        """Price a prospective hiring without reserving the bus"""
        return self._run("quote", self._quote_cost, request)

    def approve(self, hiring_id: str, actor: Actor, notes: Optional[str] = None) -> OperationResult:
        return self.change_status(hiring_id, ReservationStatus.APPROVED, actor, notes)

    def reject(self, hiring_id: str, actor: Actor, notes: Optional[str] = None) -> OperationResult:
        return self.change_status(hiring_id, ReservationStatus.REJECTED, actor, notes)

    def start_trip(self, hiring_id: str, actor: Actor) -> OperationResult:
        return self.change_status(hiring_id, ReservationStatus.IN_PROGRESS, actor, "Trip started")

    def complete_trip(self, hiring_id: str, actor: Actor) -> OperationResult:
        return self.change_status(hiring_id, ReservationStatus.COMPLETED, actor, "Trip completed")

    # Helpers

    def _hiring_window(self, start_at, end_at) -> TimeWindow:
        window = self._validate_window(start_at, end_at)
        if window.end == window.start:
            raise InvalidWindow(
                "Hiring end date must be after start date",
                start=start_at.isoformat(),
                end=end_at.isoformat()
            )
        return window

    def _check_capacity(self, bus: Bus, passenger_count: int):
        if passenger_count > bus.capacity:
            raise ResourceUnavailable(
                f"Bus {bus.bus_number} seats only {bus.capacity} passengers",
                bus_id=bus.id,
                capacity=bus.capacity,
                requested=passenger_count
            )

    def _check_policy(self, policy_name: str):
        if policy_name not in HIRING_POLICIES:
            raise InvalidConfiguration(
                f"Unknown cancellation policy: {policy_name}",
                policy=policy_name,
                known_policies=list(HIRING_POLICIES)
            )

    def _resolve_base_rate(self, bus: Bus, rate_basis: str, base_rate: Optional[Decimal]) -> Decimal:
        """Explicit rate, else the bus's published rate for the basis"""

        basis = self.fare_service.resolve_rate_basis(rate_basis)
        if base_rate is not None:
            return base_rate

        rates = bus.hiring_rates or HiringRates()
        defaults = {
            RateBasis.PER_DAY: rates.daily_rate or settings.DEFAULT_DAILY_RATE,
            RateBasis.PER_HOUR: rates.hourly_rate,
            RateBasis.PER_KILOMETER: rates.per_kilometer or settings.DEFAULT_PER_KILOMETER_RATE,
            RateBasis.FIXED: None,
        }
        rate = defaults[basis]
        if rate is None:
            raise InvalidConfiguration(
                f"A base rate is required for {basis.value} hirings",
                rate_basis=basis.value,
                bus_id=bus.id
            )
        return rate

    def _cost_context(self, hiring) -> HiringCostContext:
        return HiringCostContext(
            start_at=hiring.start_at,
            end_at=hiring.end_at,
            rate_basis=hiring.rate_basis,
            passenger_count=hiring.passenger_count,
            estimated_distance_km=hiring.estimated_distance_km,
            driver_allowance=hiring.driver_allowance,
            overtime_rate=hiring.overtime_rate,
            additional_services=hiring.additional_services,
            additional_charges=hiring.additional_charges,
            is_round_trip=hiring.is_round_trip
        )

    def _reprice(self, hiring: BusHiring):
        breakdown = self.fare_service.calculate_hiring_cost(hiring.base_rate, self._cost_context(hiring))
        hiring.cost_breakdown = breakdown
        hiring.total_amount = breakdown.total

    # Operations

    def _quote_cost(self, request: HiringCreateRequest) -> FareBreakdown:
        bus = self.catalog.get_bus(request.bus_id)
        if bus is None:
            bus = Bus(id=request.bus_id, bus_number=request.bus_id, capacity=request.passenger_count)
        self._hiring_window(request.start_at, request.end_at)
        base_rate = self._resolve_base_rate(bus, request.rate_basis, request.base_rate)
        return self.fare_service.calculate_hiring_cost(base_rate, self._cost_context(request))

    def _create_hiring(self, request: HiringCreateRequest, actor: Actor) -> BusHiring:
        bus = self._require_active_bus(request.bus_id)
        self._check_capacity(bus, request.passenger_count)
        self._check_policy(request.cancellation_policy)
        window = self._hiring_window(request.start_at, request.end_at)
        base_rate = self._resolve_base_rate(bus, request.rate_basis, request.base_rate)

        now = self.clock.now()
        hiring = BusHiring(
            id=str(uuid.uuid4()),
            reference=self._new_reference(),
            user_id=actor.user_id,
            bus_id=bus.id,
            window=window,
            start_at=request.start_at,
            end_at=request.end_at,
            passenger_count=request.passenger_count,
            rate_basis=request.rate_basis,
            base_rate=base_rate,
            estimated_distance_km=request.estimated_distance_km,
            driver_allowance=request.driver_allowance,
            overtime_rate=request.overtime_rate,
            additional_services=request.additional_services,
            additional_charges=request.additional_charges,
            is_round_trip=request.is_round_trip,
            deposit=request.deposit,
            cancellation_policy=request.cancellation_policy,
            purpose=request.purpose,
            start_location=request.start_location,
            end_location=request.end_location,
            status_history=[StatusHistoryEntry(
                status=ReservationStatus.PENDING,
                at=now,
                notes="Hiring requested",
                actor_id=actor.user_id
            )],
            created_at=now,
            updated_at=now
        )
        self._reprice(hiring)

        return self._insert(hiring)

    def _update_hiring(self, hiring_id: str, request: HiringUpdateRequest, actor: Actor) -> BusHiring:
        with self.locks.reservations.hold(hiring_id):
            hiring = self._load(hiring_id)
            self._require_modifiable(hiring, actor)

            previous_bus_id = hiring.bus_id
            changed = set()
            for field in request.model_fields_set:
                value = getattr(request, field)
                if value is None and field not in NULLABLE_FIELDS:
                    continue
                setattr(hiring, field, value)
                changed.add(field)

            if not changed:
                return hiring

            if "cancellation_policy" in changed:
                self._check_policy(hiring.cancellation_policy)

            if hiring.bus_id != previous_bus_id:
                bus = self._require_active_bus(hiring.bus_id)
            else:
                bus = self.catalog.get_bus(hiring.bus_id)
            if bus is not None and changed & {"bus_id", "passenger_count"}:
                self._check_capacity(bus, hiring.passenger_count)

            recheck = bool(changed & WINDOW_FIELDS)
            if recheck:
                hiring.window = self._hiring_window(hiring.start_at, hiring.end_at)

            if changed & PRICING_FIELDS:
                if "rate_basis" in changed and "base_rate" not in changed and bus is not None:
                    hiring.base_rate = self._resolve_base_rate(bus, hiring.rate_basis, None)
                previous_total = hiring.total_amount
                self._reprice(hiring)
                self._refresh_payment_status(hiring)
                logger.info(
                    "Repriced hiring %s: %s -> %s",
                    hiring.reference, previous_total, hiring.total_amount
                )

            hiring.updated_at = self.clock.now()
            self._commit_update(hiring, previous_bus_id, recheck)

        return hiring
