from typing import Dict, List, Optional, Union
from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging
import math

from src.config import settings
from src.pricing import tables
from src.pricing.schemas import (
    BookingFareContext, BookingType, FareBreakdown, FareLine, HiringCostContext,
    PassengerFareInput, PassengerType, RateBasis
)
from src.reservations.exceptions import InvalidConfiguration, InvalidWindow
from src.reservations.schemas import Route, round_money

logger = logging.getLogger(__name__)

ONE = Decimal('1')

class FareCalculationService:
    """Service for pricing seat bookings and bus hirings"""

    def __init__(
        self,
        service_fees: Optional[Dict[str, tables.ServiceFee]] = None,
        promo_codes: Optional[Dict[str, Decimal]] = None,
        standard_hours_per_day: Optional[int] = None,
        round_trip_discount: Optional[Decimal] = None
    ):
        self.service_fees = service_fees if service_fees is not None else tables.SERVICE_FEES
        self.promo_codes = promo_codes if promo_codes is not None else tables.PROMO_CODES
        self.standard_hours_per_day = standard_hours_per_day or settings.STANDARD_HOURS_PER_DAY
        self.round_trip_discount = (
            round_trip_discount if round_trip_discount is not None
            else settings.ROUND_TRIP_HIRING_DISCOUNT
        )

    def compute_fare(
        self,
        base: Union[Route, Decimal],
        context: Union[BookingFareContext, HiringCostContext]
    ) -> FareBreakdown:
        """Price a reservation: a route for seat bookings, a base rate for hirings"""

        if isinstance(context, BookingFareContext):
            return self.calculate_booking_fare(base, context)
        if isinstance(context, HiringCostContext):
            return self.calculate_hiring_cost(base, context)
        raise InvalidConfiguration(f"Unsupported fare context: {type(context).__name__}")

    # Seat bookings

    def is_peak_time(self, departure_at: datetime) -> bool:
        return departure_at.hour in tables.PEAK_HOURS

    def is_weekend(self, departure_at: datetime) -> bool:
        return departure_at.weekday() in tables.WEEKEND_DAYS

    def departure_factors(self, route: Route, context: BookingFareContext) -> Dict[str, Decimal]:
        """Multipliers that apply to every passenger on this departure"""

        factors = {}
        if self.is_peak_time(context.departure_at):
            factors["peak_time"] = route.peak_time_multiplier
        if self.is_weekend(context.departure_at):
            factors["weekend"] = route.weekend_multiplier
        if context.is_holiday:
            factors["holiday"] = route.holiday_multiplier
        if context.is_seasonal:
            factors["seasonal"] = route.seasonal_multiplier
        return factors

    def calculate_passenger_fare(
        self,
        route: Route,
        passenger: PassengerFareInput,
        departure_factors: Dict[str, Decimal]
    ) -> FareLine:
        """Calculate the unrounded one-way fare of a single passenger"""

        fare = route.base_fare
        if passenger.stop_point and passenger.stop_point in route.stop_points:
            fare = route.stop_points[passenger.stop_point]

        factors = dict(departure_factors)
        for multiplier in departure_factors.values():
            fare *= multiplier

        # Discounts apply multiplicatively after the surcharges
        if passenger.passenger_type == PassengerType.CHILD:
            factors["child_discount"] = ONE - route.child_discount
            fare *= ONE - route.child_discount
        elif passenger.passenger_type == PassengerType.SENIOR:
            factors["senior_discount"] = ONE - route.senior_discount
            fare *= ONE - route.senior_discount

        return FareLine(
            description=f"{passenger.passenger_type.value} fare",
            amount=fare,
            factors=factors
        )

    def calculate_booking_fare(self, route: Route, context: BookingFareContext) -> FareBreakdown:
        """Calculate the total fare of a seat booking"""

        try:
            departure_factors = self.departure_factors(route, context)
            lines = [
                self.calculate_passenger_fare(route, passenger, departure_factors)
                for passenger in context.passengers
            ]

            total = sum((line.amount for line in lines), Decimal('0'))
            applied_factors = dict(departure_factors)
            notes: List[str] = []

            # Round trips double the one-way sum before any promo code
            if context.booking_type == BookingType.ROUND_TRIP:
                applied_factors["round_trip"] = Decimal('2')
                total *= 2

            if context.promo_code:
                code = context.promo_code.strip().upper()
                discount = self.promo_codes.get(code)
                if discount is None:
                    notes.append(f"Promo code {context.promo_code} not recognised")
                else:
                    applied_factors[f"promo:{code}"] = ONE - discount
                    total *= ONE - discount
        except InvalidOperation as e:
            raise InvalidConfiguration(f"Invalid fare configuration for route {route.id}: {e}")

        for line in lines:
            line.amount = round_money(line.amount)

        return FareBreakdown(
            total=max(Decimal('0.00'), round_money(total)),
            base=round_money(route.base_fare),
            applied_factors=applied_factors,
            lines=lines,
            notes=notes
        )

    # Hirings

    def resolve_rate_basis(self, value: str) -> RateBasis:
        try:
            return RateBasis(value)
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown rate basis: {value}",
                rate_basis=value,
                known_rate_bases=[basis.value for basis in RateBasis]
            )

    def _elapsed_hours(self, context: HiringCostContext) -> Decimal:
        try:
            seconds = (context.end_at - context.start_at).total_seconds()
        except TypeError as e:
            raise InvalidWindow(f"Cannot compare hiring start and end: {e}")
        return max(Decimal('0'), Decimal(str(seconds)) / Decimal('3600'))

    def calculate_hiring_cost(self, base_rate: Decimal, context: HiringCostContext) -> FareBreakdown:
        """Calculate the total cost of a whole-bus hiring"""

        basis = self.resolve_rate_basis(context.rate_basis)
        if base_rate is None or base_rate < 0:
            raise InvalidConfiguration("Base rate must be a non-negative amount", base_rate=str(base_rate))

        elapsed_hours = self._elapsed_hours(context)

        # Zero or negative durations still bill one unit
        days = max(1, math.ceil(elapsed_hours / 24))
        hours = max(1, math.ceil(elapsed_hours))

        if basis == RateBasis.PER_DAY:
            units = Decimal(days)
        elif basis == RateBasis.PER_HOUR:
            units = Decimal(hours)
        elif basis == RateBasis.PER_KILOMETER:
            distance = context.estimated_distance_km
            units = max(ONE, distance)
        else:
            units = ONE

        base_cost = base_rate * units
        lines = [FareLine(
            description=f"Base cost ({basis.value})",
            amount=base_cost,
            factors={"units": units, "rate": base_rate}
        )]
        total = base_cost

        if context.driver_allowance > 0:
            lines.append(FareLine(description="Driver allowance", amount=context.driver_allowance))
            total += context.driver_allowance

        standard_hours = days * self.standard_hours_per_day
        if elapsed_hours > standard_hours and context.overtime_rate > 0:
            overtime_hours = elapsed_hours - standard_hours
            overtime_cost = overtime_hours * context.overtime_rate
            lines.append(FareLine(
                description="Overtime",
                amount=overtime_cost,
                factors={"hours": overtime_hours, "rate": context.overtime_rate}
            ))
            total += overtime_cost

        quantities = tables.ServiceQuantities(
            days=days,
            hours=hours,
            passengers=context.passenger_count
        )
        for service in context.additional_services:
            fee = self.service_fees.get(service.strip().lower())
            if fee is None:
                raise InvalidConfiguration(
                    f"Unknown additional service: {service}",
                    service=service,
                    known_services=sorted(self.service_fees)
                )
            amount = fee(quantities)
            lines.append(FareLine(description=f"Service: {service}", amount=amount))
            total += amount

        for charge in context.additional_charges:
            lines.append(FareLine(description=charge.description, amount=charge.amount))
            total += charge.amount

        applied_factors = {}
        if context.is_round_trip:
            applied_factors["round_trip"] = ONE - self.round_trip_discount
            total *= ONE - self.round_trip_discount

        for line in lines:
            line.amount = round_money(line.amount)

        total = round_money(total)
        if total < 0:
            logger.warning("Hiring cost computed below zero (%s); clamping to 0", total)
            total = Decimal('0.00')

        return FareBreakdown(
            total=total,
            base=round_money(base_rate),
            applied_factors=applied_factors,
            lines=lines
        )
