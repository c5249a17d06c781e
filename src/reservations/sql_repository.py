"""SQLAlchemy-backed catalog and reservation store.

Seat bookings and bus hirings live in their own tables; both carry the
occupied window as ``start_at``/``end_at`` columns so that the overlap query
can run against either table with the same filter. Nested values (passengers,
services, fare breakdowns, status history) are stored as JSON documents and
the payment ledger as rows of ``payment_entries``.
"""

import logging
from enum import Enum
from typing import List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src import models
from src.bookings.schemas import SeatBooking
from src.hiring.schemas import BusHiring
from src.reservations.repository import BusCatalog, ReservationRepository
from src.reservations.schemas import (
    LIVE_STATUSES, Bus, HiringRates, LedgerEntry, Reservation, ReservationKind, Route, TimeWindow
)

logger = logging.getLogger(__name__)


COMMON_COLUMNS = (
    "id", "reference", "user_id", "bus_id", "status", "payment_status",
    "total_amount", "created_at", "updated_at"
)
COMMON_DOCUMENTS = ("status_history", "cancellation")

BOOKING_COLUMNS = (
    "route_id", "departure_at", "return_at", "booking_type", "is_holiday",
    "is_seasonal", "promo_code", "special_requests"
)
BOOKING_DOCUMENTS = ("passengers", "fare_breakdown")

HIRING_COLUMNS = (
    "passenger_count", "rate_basis", "base_rate", "estimated_distance_km",
    "driver_allowance", "overtime_rate", "is_round_trip", "deposit",
    "cancellation_policy", "purpose", "start_location", "end_location"
)
HIRING_DOCUMENTS = ("additional_services", "additional_charges", "cost_breakdown")


def _column_value(value):
    return value.value if isinstance(value, Enum) else value


class _Mapping:
    """How one reservation kind maps onto its table"""

    def __init__(self, table, schema: Type[Reservation], columns, documents):
        self.table = table
        self.schema = schema
        self.columns = COMMON_COLUMNS + columns
        self.documents = COMMON_DOCUMENTS + documents

    def write(self, row, reservation: Reservation):
        for name in self.columns:
            setattr(row, name, _column_value(getattr(reservation, name)))

        documents = reservation.model_dump(mode="json", include=set(self.documents))
        for name in self.documents:
            setattr(row, name, documents.get(name))

        row.start_at = reservation.window.start
        row.end_at = reservation.window.end

        known = {payment.id for payment in row.payments}
        for entry in reservation.ledger:
            if entry.id in known:
                continue
            row.payments.append(models.PaymentEntry(
                id=entry.id,
                amount=entry.amount,
                method=entry.method.value,
                transaction_id=entry.transaction_id,
                status=entry.status.value,
                flagged=entry.flagged,
                created_at=entry.created_at
            ))

    def read(self, row) -> Reservation:
        data = {name: getattr(row, name) for name in self.columns + self.documents}
        data["window"] = TimeWindow(start=row.start_at, end=row.end_at)
        if self.schema is BusHiring:
            data["start_at"] = row.start_at
            data["end_at"] = row.end_at
        data["status_history"] = data["status_history"] or []
        data["ledger"] = [
            LedgerEntry(
                id=payment.id,
                amount=payment.amount,
                method=payment.method,
                transaction_id=payment.transaction_id,
                status=payment.status,
                flagged=bool(payment.flagged),
                created_at=payment.created_at
            )
            for payment in row.payments
        ]
        return self.schema.model_validate(data)


MAPPINGS = {
    ReservationKind.BOOKING: _Mapping(
        models.Booking, SeatBooking, BOOKING_COLUMNS, BOOKING_DOCUMENTS
    ),
    ReservationKind.HIRING: _Mapping(
        models.Hiring, BusHiring, HIRING_COLUMNS, HIRING_DOCUMENTS
    ),
}


class SqlBusCatalog(BusCatalog):
    """Buses and routes read from the shared database"""

    def __init__(self, db: Session):
        self.db = db

    def get_bus(self, bus_id: str) -> Optional[Bus]:
        bus = self.db.query(models.Bus).filter(models.Bus.id == bus_id).first()
        if not bus:
            return None

        rates = None
        if bus.daily_rate is not None or bus.hourly_rate is not None or bus.per_kilometer_rate is not None:
            rates = HiringRates(
                daily_rate=bus.daily_rate,
                hourly_rate=bus.hourly_rate,
                per_kilometer=bus.per_kilometer_rate
            )

        return Bus(
            id=bus.id,
            bus_number=bus.bus_number,
            capacity=bus.capacity,
            status=bus.status,
            hiring_rates=rates
        )

    def get_route(self, route_id: str) -> Optional[Route]:
        route = self.db.query(models.Route).filter(models.Route.id == route_id).first()
        if not route:
            return None

        return Route(
            id=route.id,
            name=route.name,
            base_fare=route.base_fare,
            estimated_duration_minutes=route.estimated_duration_minutes or 0,
            peak_time_multiplier=route.peak_time_multiplier,
            weekend_multiplier=route.weekend_multiplier,
            holiday_multiplier=route.holiday_multiplier,
            seasonal_multiplier=route.seasonal_multiplier,
            child_discount=route.child_discount,
            senior_discount=route.senior_discount,
            stop_points=route.stop_points or {}
        )


class SqlReservationRepository(ReservationRepository):
    """Reservation store over the ``seat_bookings`` and ``bus_hirings`` tables"""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, reservation: Reservation):
        try:
            self.db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to store %s %s", reservation.kind.value, reservation.reference)
            self.db.rollback()
            raise

    def _find_row(self, reservation_id: str):
        for kind, mapping in MAPPINGS.items():
            row = self.db.query(mapping.table).filter(mapping.table.id == reservation_id).first()
            if row:
                return kind, row
        return None, None

    def add(self, reservation: Reservation) -> Reservation:
        mapping = MAPPINGS[reservation.kind]
        row = mapping.table()
        mapping.write(row, reservation)
        self.db.add(row)
        self._commit(reservation)
        return reservation

    def get(self, reservation_id: str) -> Optional[Reservation]:
        kind, row = self._find_row(reservation_id)
        if row is None:
            return None
        return MAPPINGS[kind].read(row)

    def save(self, reservation: Reservation) -> Reservation:
        mapping = MAPPINGS[reservation.kind]
        row = self.db.query(mapping.table).filter(mapping.table.id == reservation.id).first()
        if row is None:
            return self.add(reservation)

        mapping.write(row, reservation)
        self._commit(reservation)
        return reservation

    def find_overlapping(
        self,
        bus_id: str,
        window: TimeWindow,
        exclude_id: Optional[str] = None
    ) -> List[Reservation]:
        live = [status.value for status in LIVE_STATUSES]
        overlapping: List[Reservation] = []

        for mapping in MAPPINGS.values():
            table = mapping.table
            query = self.db.query(table).filter(
                table.bus_id == bus_id,
                table.status.in_(live),
                table.start_at <= window.end,
                table.end_at >= window.start
            )
            if exclude_id:
                query = query.filter(table.id != exclude_id)
            overlapping.extend(mapping.read(row) for row in query.all())

        return overlapping

    def list_for_user(
        self,
        user_id: str,
        kind: Optional[ReservationKind] = None
    ) -> List[Reservation]:
        reservations: List[Reservation] = []
        for mapping_kind, mapping in MAPPINGS.items():
            if kind is not None and kind != mapping_kind:
                continue
            rows = (
                self.db.query(mapping.table)
                .filter(mapping.table.user_id == user_id)
                .order_by(mapping.table.created_at.desc())
                .all()
            )
            reservations.extend(mapping.read(row) for row in rows)

        return sorted(reservations, key=lambda r: r.created_at, reverse=True)
