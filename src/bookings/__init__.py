"""
Seat Booking Module

This module manages seat bookings on scheduled bus routes. It includes:

- Booking creation with seat, capacity and bus availability checks
- Fare calculation for one-way and round-trip journeys
- Booking modification with repricing and conflict re-checks
- Payment recording with automatic confirmation once fully paid
- Cancellation with hour-based refund tiers

Key Components:
- booking_service.py: Booking lifecycle built on the shared reservation lifecycle
- router.py: FastAPI endpoints for booking management
- schemas.py: Pydantic models for bookings, passengers and requests
"""

from .booking_service import BookingService
from .schemas import (
    Passenger, SeatBooking, BookingCreateRequest, BookingUpdateRequest, BookingQuote
)

__all__ = [
    "BookingService",
    "Passenger",
    "SeatBooking",
    "BookingCreateRequest",
    "BookingUpdateRequest",
    "BookingQuote"
]
