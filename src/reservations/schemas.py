from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Literal, Any
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from src.reservations.clock import to_utc_naive
from src.reservations.exceptions import ReservationError

CENT = Decimal('0.01')

def round_money(value) -> Decimal:
    """Quantize a monetary value to 2 decimal places"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)

class ReservationKind(str, Enum):
    """Reservation variant"""
    BOOKING = "booking"
    HIRING = "hiring"

class ReservationStatus(str, Enum):
    """Reservation status enumeration (union of both variants)"""
    PENDING = "pending"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    REFUNDED = "refunded"

# Statuses that occupy a bus for conflict detection
LIVE_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.APPROVED,
    ReservationStatus.CONFIRMED,
    ReservationStatus.IN_PROGRESS,
})

class PaymentStatus(str, Enum):
    """Payment status derived from the ledger"""
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"

class LedgerEntryStatus(str, Enum):
    """Completion status of a ledger entry"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class PaymentMethodType(str, Enum):
    """Payment method used for a ledger entry"""
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    OTHER = "other"
    REFUND = "refund"

class BusStatus(str, Enum):
    """Operating status of a bus"""
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"
    RESERVED = "reserved"

class ActorRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

# Resources (read-only for the engine)
class HiringRates(BaseModel):
    """Default hiring rates published for a bus"""
    daily_rate: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    per_kilometer: Optional[Decimal] = None

class Bus(BaseModel):
    """Bus as seen by the engine"""
    id: str
    bus_number: str
    capacity: int
    status: BusStatus = BusStatus.ACTIVE
    hiring_rates: Optional[HiringRates] = None

class Route(BaseModel):
    """Scheduled route with its pricing factors"""
    id: str
    name: str
    base_fare: Decimal
    estimated_duration_minutes: int = 0
    peak_time_multiplier: Decimal = Decimal('1')
    weekend_multiplier: Decimal = Decimal('1')
    holiday_multiplier: Decimal = Decimal('1')
    seasonal_multiplier: Decimal = Decimal('1')
    child_discount: Decimal = Decimal('0')
    senior_discount: Decimal = Decimal('0')
    stop_points: Dict[str, Decimal] = Field(default_factory=dict)

class Actor(BaseModel):
    """User performing an operation"""
    user_id: str
    role: ActorRole = ActorRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

# Reservation core
class TimeWindow(BaseModel):
    """Closed time interval occupied by a reservation"""
    start: datetime
    end: datetime

    @validator('start', 'end')
    def normalize_instant(cls, v):
        return to_utc_naive(v)

class LedgerEntry(BaseModel):
    """One signed monetary transaction (charge > 0, refund < 0)"""
    id: str
    amount: Decimal
    method: PaymentMethodType = PaymentMethodType.OTHER
    transaction_id: str
    status: LedgerEntryStatus = LedgerEntryStatus.COMPLETED
    flagged: bool = False
    created_at: datetime

    @property
    def kind(self) -> str:
        return "refund" if self.amount < 0 else "charge"

class StatusHistoryEntry(BaseModel):
    status: ReservationStatus
    at: datetime
    notes: Optional[str] = None
    actor_id: Optional[str] = None

class CancellationDetails(BaseModel):
    reason: str
    cancelled_at: datetime
    cancelled_by: Optional[str] = None
    refund_percentage: Decimal = Decimal('0')
    refund_amount: Decimal = Decimal('0')

class Reservation(BaseModel):
    """Capabilities shared by seat bookings and bus hirings"""
    id: str
    reference: str
    kind: ReservationKind
    user_id: str
    bus_id: str
    window: TimeWindow
    status: ReservationStatus = ReservationStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    total_amount: Decimal = Decimal('0.00')
    ledger: List[LedgerEntry] = Field(default_factory=list)
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    cancellation: Optional[CancellationDetails] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

# Events
class ReservationEvent(BaseModel):
    """Domain event handed to the notification collaborator"""
    reservation_id: str
    reservation_kind: ReservationKind
    event_type: Literal["status_changed", "payment_recorded", "refund_recorded"]
    old_status: ReservationStatus
    new_status: ReservationStatus
    amount: Optional[Decimal] = None
    timestamp: datetime

# Operation results
class PaymentReceipt(BaseModel):
    reservation_id: str
    entry: LedgerEntry
    total_paid: Decimal
    remaining_balance: Decimal
    payment_status: PaymentStatus
    reservation_status: ReservationStatus

class CancellationOutcome(BaseModel):
    reservation_id: str
    policy: str
    time_to_start: float
    refund_percentage: Decimal
    refund_amount: Decimal
    payment_status: PaymentStatus
    reservation_status: ReservationStatus

class OperationResult(BaseModel):
    """Transport-neutral outcome of a lifecycle operation"""
    status: Literal["success", "error"]
    data: Optional[Any] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, data: Any = None) -> "OperationResult":
        return cls(status="success", data=data)

    @classmethod
    def failure(cls, error: ReservationError) -> "OperationResult":
        return cls(
            status="error",
            error_kind=error.kind,
            message=error.message,
            context=error.context
        )

# Requests shared by both reservation kinds
class PaymentRequest(BaseModel):
    """Outcome of a successful external payment to record on the ledger"""
    amount: Decimal
    method: PaymentMethodType = PaymentMethodType.CREDIT_CARD
    transaction_id: Optional[str] = None

class CancellationRequest(BaseModel):
    reason: Optional[str] = None

class StatusChangeRequest(BaseModel):
    status: ReservationStatus
    notes: Optional[str] = None

class RefundIssueRequest(BaseModel):
    amount: Optional[Decimal] = None
    transaction_id: Optional[str] = None
