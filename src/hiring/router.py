from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from src.auth.dependencies import get_current_actor, require_admin
from src.hiring.hiring_service import HiringService
from src.hiring.schemas import BusHiring, HiringCreateRequest, HiringUpdateRequest
from src.pricing.schemas import FareBreakdown
from src.reservations.dependencies import get_hiring_service, unwrap
from src.reservations.schemas import (
    Actor, CancellationOutcome, CancellationRequest, PaymentReceipt, PaymentRequest,
    RefundIssueRequest, StatusChangeRequest
)

router = APIRouter()

# Hiring Management Endpoints
@router.post("/", response_model=BusHiring, status_code=status.HTTP_201_CREATED)
def create_hiring(
    request: HiringCreateRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Request a whole-bus hiring"""
    return unwrap(hiring_service.create_hiring(request, actor))

@router.post("/quote", response_model=FareBreakdown)
def quote_hiring_cost(
    request: HiringCreateRequest,
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Price a hiring without reserving the bus"""
    return unwrap(hiring_service.quote_cost(request))

@router.get("/", response_model=List[BusHiring])
def list_my_hirings(
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """List the current user's hirings, newest first"""
    return unwrap(hiring_service.list_for_user(actor.user_id))

@router.get("/{hiring_id}", response_model=BusHiring)
def get_hiring(
    hiring_id: str,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Get hiring details by ID"""

    hiring = unwrap(hiring_service.get(hiring_id))
    if hiring.user_id != actor.user_id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to view this hiring"
        )
    return hiring

@router.put("/{hiring_id}", response_model=BusHiring)
def update_hiring(
    hiring_id: str,
    request: HiringUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Modify an existing hiring"""
    return unwrap(hiring_service.update_hiring(hiring_id, request, actor))

# Payment & Cancellation Endpoints
@router.post("/{hiring_id}/payments", response_model=PaymentReceipt)
def record_hiring_payment(
    hiring_id: str,
    payment: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Record a deposit or balance payment accepted by the payment provider"""
    return unwrap(hiring_service.record_payment(
        hiring_id,
        payment.amount,
        payment.method,
        payment.transaction_id
    ))

@router.post("/{hiring_id}/cancel", response_model=CancellationOutcome)
def cancel_hiring(
    hiring_id: str,
    request: CancellationRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Cancel a hiring and refund according to its cancellation policy"""
    return unwrap(hiring_service.cancel(hiring_id, actor, request.reason))

@router.post("/{hiring_id}/refund", response_model=BusHiring)
def issue_hiring_refund(
    hiring_id: str,
    request: RefundIssueRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Refund a cancelled hiring (admin only)"""
    return unwrap(hiring_service.issue_refund(
        hiring_id,
        actor,
        request.amount,
        request.transaction_id
    ))

# Admin Workflow Endpoints
@router.put("/{hiring_id}/status", response_model=BusHiring)
def change_hiring_status(
    hiring_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    """Move a hiring to a new status (admin only)"""
    return unwrap(hiring_service.change_status(hiring_id, request.status, actor, request.notes))

@router.post("/{hiring_id}/approve", response_model=BusHiring)
def approve_hiring(
    hiring_id: str,
    notes: Optional[str] = None,
    actor: Actor = Depends(require_admin),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    return unwrap(hiring_service.approve(hiring_id, actor, notes))

@router.post("/{hiring_id}/reject", response_model=BusHiring)
def reject_hiring(
    hiring_id: str,
    notes: Optional[str] = None,
    actor: Actor = Depends(require_admin),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    return unwrap(hiring_service.reject(hiring_id, actor, notes))

@router.post("/{hiring_id}/start", response_model=BusHiring)
def start_hiring_trip(
    hiring_id: str,
    actor: Actor = Depends(require_admin),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    return unwrap(hiring_service.start_trip(hiring_id, actor))

@router.post("/{hiring_id}/complete", response_model=BusHiring)
def complete_hiring_trip(
    hiring_id: str,
    actor: Actor = Depends(require_admin),
    hiring_service: HiringService = Depends(get_hiring_service)
):
    return unwrap(hiring_service.complete_trip(hiring_id, actor))
