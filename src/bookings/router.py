from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

from src.auth.dependencies import get_current_actor
from src.bookings.booking_service import BookingService
from src.bookings.schemas import BookingCreateRequest, BookingQuote, BookingUpdateRequest, SeatBooking
from src.pricing.schemas import FareBreakdown
from src.reservations.dependencies import get_booking_service, unwrap
from src.reservations.schemas import (
    Actor, CancellationOutcome, CancellationRequest, PaymentReceipt, PaymentRequest,
    RefundIssueRequest, StatusChangeRequest
)

router = APIRouter()

# Booking Management Endpoints
@router.post("/", response_model=SeatBooking, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Create a new pending booking"""
    return unwrap(booking_service.create_booking(request, actor))

@router.post("/quote", response_model=FareBreakdown)
def quote_booking_fare(
    quote: BookingQuote,
    booking_service: BookingService = Depends(get_booking_service)
):
    """Price a booking without reserving seats"""
    return unwrap(booking_service.quote_fare(quote))

@router.get("/", response_model=List[SeatBooking])
def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """List the current user's bookings, newest first"""
    return unwrap(booking_service.list_for_user(actor.user_id))

@router.get("/{booking_id}", response_model=SeatBooking)
def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Get booking details by ID"""

    booking = unwrap(booking_service.get(booking_id))
    if booking.user_id != actor.user_id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to view this booking"
        )
    return booking

@router.put("/{booking_id}", response_model=SeatBooking)
def update_booking(
    booking_id: str,
    request: BookingUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Modify an existing booking"""
    return unwrap(booking_service.update_booking(booking_id, request, actor))

# Payment & Cancellation Endpoints
@router.post("/{booking_id}/payments", response_model=PaymentReceipt)
def record_booking_payment(
    booking_id: str,
    payment: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Record a payment accepted by the payment provider"""
    return unwrap(booking_service.record_payment(
        booking_id,
        payment.amount,
        payment.method,
        payment.transaction_id
    ))

@router.post("/{booking_id}/cancel", response_model=CancellationOutcome)
def cancel_booking(
    booking_id: str,
    request: CancellationRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Cancel a booking and refund according to the cancellation policy"""
    return unwrap(booking_service.cancel(booking_id, actor, request.reason))

@router.put("/{booking_id}/status", response_model=SeatBooking)
def change_booking_status(
    booking_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Move a booking to a new status (admin only)"""
    return unwrap(booking_service.change_status(booking_id, request.status, actor, request.notes))

@router.post("/{booking_id}/refund", response_model=SeatBooking)
def issue_booking_refund(
    booking_id: str,
    request: RefundIssueRequest,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Refund a cancelled booking (admin only)"""
    return unwrap(booking_service.issue_refund(
        booking_id,
        actor,
        request.amount,
        request.transaction_id
    ))
