"""
Bus Hiring Module

This module manages whole-bus hiring contracts. It includes:

- Hiring requests with capacity and bus availability checks
- Cost calculation by day, hour, kilometer or fixed rate
- Driver allowance, overtime, extra services and round-trip discount
- Deposit-based confirmation
- Admin approval workflow (approve, reject, start and complete trips)
- Cancellation under the Standard, Flexible or Strict refund policy

Key Components:
- hiring_service.py: Hiring lifecycle built on the shared reservation lifecycle
- router.py: FastAPI endpoints for hiring management
- schemas.py: Pydantic models for hirings and requests
"""

from .hiring_service import HiringService
from .schemas import BusHiring, HiringCreateRequest, HiringUpdateRequest

__all__ = [
    "HiringService",
    "BusHiring",
    "HiringCreateRequest",
    "HiringUpdateRequest"
]
