from fastapi import Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from src.database import get_db
from src.bookings.booking_service import BookingService
from src.hiring.hiring_service import HiringService
from src.pricing.fare_service import FareCalculationService
from src.reservations.events import EventPublisher
from src.reservations.locks import ReservationLocks
from src.reservations.schemas import OperationResult
from src.reservations.sql_repository import SqlBusCatalog, SqlReservationRepository

# Process-wide state shared by every request
locks = ReservationLocks()
events = EventPublisher()
fare_service = FareCalculationService()

ERROR_STATUS_CODES = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "Unauthorized": status.HTTP_403_FORBIDDEN,
    "ResourceUnavailable": status.HTTP_409_CONFLICT,
}

def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(
        SqlReservationRepository(db),
        SqlBusCatalog(db),
        fare_service=fare_service,
        events=events,
        locks=locks
    )

def get_hiring_service(db: Session = Depends(get_db)) -> HiringService:
    return HiringService(
        SqlReservationRepository(db),
        SqlBusCatalog(db),
        fare_service=fare_service,
        events=events,
        locks=locks
    )

def unwrap(result: OperationResult):
    """Return the result data or raise the matching HTTP error"""
    if result.ok:
        return result.data

    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(result.error_kind, status.HTTP_400_BAD_REQUEST),
        detail={
            "error": result.error_kind,
            "message": result.message,
            "context": jsonable_encoder(result.context)
        }
    )
