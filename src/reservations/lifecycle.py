"""Lifecycle operations shared by seat bookings and bus hirings.

``ReservationLifecycle`` owns everything that does not depend on the
reservation variant: loading and authorisation, conflict detection against
both kinds on a bus, status transitions with history and events, the payment
ledger and the cancellation/refund flow. Subclasses supply creation, update
and the variant hooks (refund policy, confirmation threshold, cancellation
cut-off).

Public methods never raise ``ReservationError``; they return an
``OperationResult`` carrying either the data or the error kind and context.
"""

import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Callable, FrozenSet, Iterable, List, Optional

from src.pricing.fare_service import FareCalculationService
from src.reservations import refund_policy
from src.reservations.clock import SystemClock
from src.reservations.events import EventPublisher
from src.reservations.exceptions import (
    InvalidAmount, InvalidTransition, InvalidWindow, NotFound, ReservationError,
    ResourceUnavailable, Unauthorized
)
from src.reservations.ledger import PaymentLedger
from src.reservations.locks import ReservationLocks
from src.reservations.overlap import find_conflicts
from src.reservations.repository import BusCatalog, ReservationRepository
from src.reservations.schemas import (
    Actor, Bus, BusStatus, CancellationDetails, CancellationOutcome,
    OperationResult, PaymentMethodType, PaymentReceipt, PaymentStatus,
    Reservation, ReservationEvent, ReservationKind, ReservationStatus,
    StatusHistoryEntry, TimeWindow, round_money
)
from src.reservations.state_machine import is_terminal, validate_transition

logger = logging.getLogger(__name__)


class ReservationLifecycle:
    """Base service for reservation lifecycle management"""

    kind: ReservationKind
    reference_prefix: str
    # Statuses a sufficient payment auto-confirms from
    auto_confirm_from: FrozenSet[ReservationStatus] = frozenset({ReservationStatus.PENDING})

    def __init__(
        self,
        repository: ReservationRepository,
        catalog: BusCatalog,
        fare_service: Optional[FareCalculationService] = None,
        clock=None,
        events=None,
        locks: Optional[ReservationLocks] = None
    ):
        self.repository = repository
        self.catalog = catalog
        self.fare_service = fare_service or FareCalculationService()
        self.clock = clock or SystemClock()
        self.events = events or EventPublisher()
        self.locks = locks or ReservationLocks()

    # Variant hooks

    def refund_policy_name(self, reservation: Reservation) -> str:
        raise NotImplementedError

    def confirmation_threshold(self, reservation: Reservation) -> Decimal:
        return reservation.total_amount

    def cancellation_cutoff(self) -> float:
        """Time before start (in the refund policy's unit) below which only admins may cancel"""
        raise NotImplementedError

    # Public operations

    def get(self, reservation_id: str) -> OperationResult:
        return self._run("get", self._load, reservation_id)

    def list_for_user(self, user_id: str) -> OperationResult:
        return self._run("list", self.repository.list_for_user, user_id, self.kind)

    def record_payment(
        self,
        reservation_id: str,
        amount,
        method: PaymentMethodType = PaymentMethodType.CREDIT_CARD,
        transaction_id: Optional[str] = None
    ) -> OperationResult:
        """Record a payment already accepted by the payment collaborator"""
        return self._run("payment", self._record_payment, reservation_id, amount, method, transaction_id)

    def cancel(self, reservation_id: str, actor: Actor, reason: Optional[str] = None) -> OperationResult:
        return self._run("cancel", self._cancel, reservation_id, actor, reason)

    def change_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        actor: Actor,
        notes: Optional[str] = None
    ) -> OperationResult:
        return self._run("status change", self._change_status, reservation_id, new_status, actor, notes)

    def issue_refund(
        self,
        reservation_id: str,
        actor: Actor,
        amount=None,
        transaction_id: Optional[str] = None
    ) -> OperationResult:
        """Refund bookkeeping on an already cancelled reservation (admin only)"""
        return self._run("refund", self._issue_refund, reservation_id, actor, amount, transaction_id)

    # Result handling

    def _run(self, operation: str, func: Callable, *args, **kwargs) -> OperationResult:
        try:
            return OperationResult.success(func(*args, **kwargs))
        except ReservationError as e:
            logger.info("%s %s failed: %s (%s)", self.kind.value, operation, e.kind, e.message)
            return OperationResult.failure(e)

    # Loading and validation

    def _load(self, reservation_id: str) -> Reservation:
        reservation = self.repository.get(reservation_id)
        if reservation is None or reservation.kind != self.kind:
            raise NotFound(f"{self.kind.value.capitalize()} not found", reservation_id=reservation_id)
        return reservation

    def _authorize(self, reservation: Reservation, actor: Actor):
        if not actor.is_admin and reservation.user_id != actor.user_id:
            raise Unauthorized(
                f"You are not authorized to modify this {self.kind.value}",
                reservation_id=reservation.id
            )

    def _require_active_bus(self, bus_id: str) -> Bus:
        bus = self.catalog.get_bus(bus_id)
        if bus is None:
            raise NotFound("Bus not found", bus_id=bus_id)
        if bus.status != BusStatus.ACTIVE:
            raise ResourceUnavailable(
                f"Bus is {bus.status.value.replace('_', ' ')}",
                bus_id=bus_id,
                bus_status=bus.status.value
            )
        return bus

    def _validate_window(self, start: datetime, end: datetime) -> TimeWindow:
        try:
            if end < start:
                raise InvalidWindow(
                    "Reservation must end after it starts",
                    start=start.isoformat(),
                    end=end.isoformat()
                )
        except TypeError as e:
            raise InvalidWindow(f"Invalid reservation dates: {e}")
        return TimeWindow(start=start, end=end)

    def _ensure_available(self, bus_id: str, window: TimeWindow, exclude_id: Optional[str] = None):
        """Raise if any live reservation of either kind holds the bus in the window.

        Callers must hold the bus lock so that the check and the following
        write are atomic.
        """
        candidates = self.repository.find_overlapping(bus_id, window, exclude_id=exclude_id)
        conflicting = find_conflicts(candidates, window, exclude_id=exclude_id)
        if conflicting:
            logger.warning(
                "Bus %s unavailable %s - %s: conflicts with %s",
                bus_id, window.start, window.end, [r.reference for r in conflicting]
            )
            raise ResourceUnavailable(
                "Bus is already reserved during the requested period",
                conflicts=[r.reference for r in conflicting],
                conflicting_ids=[r.id for r in conflicting],
                bus_id=bus_id
            )

    # Persistence helpers

    def _new_reference(self) -> str:
        return f"{self.reference_prefix}-{secrets.token_hex(4).upper()}"

    def _insert(self, reservation: Reservation) -> Reservation:
        """Conflict check and write under the bus lock"""
        with self.locks.buses.hold(reservation.bus_id):
            self._ensure_available(reservation.bus_id, reservation.window)
            self.repository.add(reservation)

        logger.info(
            "Created %s %s on bus %s for %s",
            self.kind.value, reservation.reference, reservation.bus_id, reservation.total_amount
        )
        return reservation

    def _commit_update(self, reservation: Reservation, previous_bus_id: str, recheck: bool):
        """Persist an update, re-running the conflict check when the window or bus changed"""
        if not recheck:
            self.repository.save(reservation)
            return

        with self.locks.buses.hold_many([previous_bus_id, reservation.bus_id]):
            self._ensure_available(reservation.bus_id, reservation.window, exclude_id=reservation.id)
            self.repository.save(reservation)

    def _refresh_payment_status(self, reservation: Reservation) -> PaymentLedger:
        ledger = PaymentLedger(reservation.ledger, reservation.total_amount)
        reservation.payment_status = ledger.payment_status()
        return ledger

    def _require_modifiable(self, reservation: Reservation, actor: Actor):
        self._authorize(reservation, actor)
        if is_terminal(self.kind, reservation.status):
            raise InvalidTransition(
                reservation.status.value,
                "modified",
                reservation_id=reservation.id
            )

    # Status and events

    def _event(
        self,
        reservation: Reservation,
        event_type: str,
        old_status: ReservationStatus,
        amount: Optional[Decimal] = None
    ) -> ReservationEvent:
        return ReservationEvent(
            reservation_id=reservation.id,
            reservation_kind=reservation.kind,
            event_type=event_type,
            old_status=old_status,
            new_status=reservation.status,
            amount=amount,
            timestamp=self.clock.now()
        )

    def _transition(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        pending_events: List[ReservationEvent],
        notes: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> bool:
        """Apply a status change; same-status requests are no-ops"""
        if not validate_transition(self.kind, reservation.status, target):
            return False

        old_status = reservation.status
        now = self.clock.now()
        reservation.status = target
        reservation.updated_at = now
        reservation.status_history.append(StatusHistoryEntry(
            status=target,
            at=now,
            notes=notes,
            actor_id=actor_id
        ))
        pending_events.append(self._event(reservation, "status_changed", old_status))

        logger.info(
            "%s %s: %s -> %s",
            self.kind.value, reservation.reference, old_status.value, target.value
        )
        return True

    def _publish(self, pending_events: Iterable[ReservationEvent]):
        for event in pending_events:
            self.events.publish(event)

    # Payments

    def _record_payment(self, reservation_id, amount, method, transaction_id) -> PaymentReceipt:
        with self.locks.reservations.hold(reservation_id):
            reservation = self._load(reservation_id)
            if is_terminal(self.kind, reservation.status):
                raise InvalidTransition(
                    reservation.status.value,
                    "payment",
                    reservation_id=reservation_id
                )

            pending_events: List[ReservationEvent] = []
            ledger = PaymentLedger(reservation.ledger, reservation.total_amount)
            entry = ledger.add_payment(amount, method, transaction_id, now=self.clock.now())
            reservation.payment_status = ledger.payment_status()
            reservation.updated_at = self.clock.now()
            pending_events.append(
                self._event(reservation, "payment_recorded", reservation.status, amount=entry.amount)
            )

            if (reservation.status in self.auto_confirm_from
                    and ledger.total_paid() >= self.confirmation_threshold(reservation)):
                self._transition(
                    reservation,
                    ReservationStatus.CONFIRMED,
                    pending_events,
                    notes="Confirmed after payment"
                )

            self.repository.save(reservation)

        self._publish(pending_events)

        return PaymentReceipt(
            reservation_id=reservation.id,
            entry=entry,
            total_paid=ledger.total_paid(),
            remaining_balance=ledger.remaining_balance(),
            payment_status=reservation.payment_status,
            reservation_status=reservation.status
        )

    # Cancellation and refunds

    def _cancel(self, reservation_id: str, actor: Actor, reason: Optional[str]) -> CancellationOutcome:
        with self.locks.reservations.hold(reservation_id):
            reservation = self._load(reservation_id)
            self._authorize(reservation, actor)
            pending_events: List[ReservationEvent] = []
            outcome = self._apply_cancellation(reservation, actor, reason, pending_events)
            self.repository.save(reservation)

        self._publish(pending_events)
        return outcome

    def _apply_cancellation(
        self,
        reservation: Reservation,
        actor: Actor,
        reason: Optional[str],
        pending_events: List[ReservationEvent]
    ) -> CancellationOutcome:
        if is_terminal(self.kind, reservation.status):
            raise InvalidTransition(
                reservation.status.value,
                ReservationStatus.CANCELLED.value,
                reservation_id=reservation.id
            )
        validate_transition(self.kind, reservation.status, ReservationStatus.CANCELLED)

        now = self.clock.now()
        policy_name = self.refund_policy_name(reservation)
        remaining = refund_policy.time_to_start(policy_name, reservation.window.start, now)

        if remaining < self.cancellation_cutoff() and not actor.is_admin:
            logger.warning(
                "Late cancellation of %s by %s rejected (%.2f left)",
                reservation.reference, actor.user_id, remaining
            )
            raise Unauthorized(
                f"{self.kind.value.capitalize()} cannot be cancelled this close to its start",
                time_to_start=remaining,
                cutoff=self.cancellation_cutoff(),
                unit=refund_policy.get_policy(policy_name).unit
            )

        percentage = refund_policy.refund_percentage(policy_name, remaining)
        ledger = PaymentLedger(reservation.ledger, reservation.total_amount)
        paid = ledger.total_paid()
        refund_amount = round_money(max(paid, Decimal('0')) * percentage)

        old_status = reservation.status
        if refund_amount > 0:
            ledger.add_refund(refund_amount, now=now)
            pending_events.append(
                self._event(reservation, "refund_recorded", old_status, amount=-refund_amount)
            )
        reservation.payment_status = ledger.payment_status()

        reason = reason or ("Cancelled by admin" if actor.is_admin else "Cancelled by user")
        reservation.cancellation = CancellationDetails(
            reason=reason,
            cancelled_at=now,
            cancelled_by=actor.user_id,
            refund_percentage=percentage,
            refund_amount=refund_amount
        )
        self._transition(reservation, ReservationStatus.CANCELLED, pending_events, reason, actor.user_id)

        if paid > 0 and reservation.payment_status == PaymentStatus.REFUNDED:
            self._transition(
                reservation,
                ReservationStatus.REFUNDED,
                pending_events,
                "Full refund issued",
                actor.user_id
            )

        return CancellationOutcome(
            reservation_id=reservation.id,
            policy=policy_name,
            time_to_start=remaining,
            refund_percentage=percentage,
            refund_amount=refund_amount,
            payment_status=reservation.payment_status,
            reservation_status=reservation.status
        )

    def _apply_rejection(
        self,
        reservation: Reservation,
        actor: Actor,
        notes: Optional[str],
        pending_events: List[ReservationEvent]
    ):
        """Reject a request and hand back everything paid towards it"""
        validate_transition(self.kind, reservation.status, ReservationStatus.REJECTED)

        ledger = PaymentLedger(reservation.ledger, reservation.total_amount)
        paid = ledger.total_paid()
        if paid > 0:
            entry = ledger.add_refund(paid, now=self.clock.now())
            pending_events.append(
                self._event(reservation, "refund_recorded", reservation.status, amount=entry.amount)
            )
            logger.info("Refunded %s on rejected %s %s", paid, self.kind.value, reservation.reference)
        reservation.payment_status = ledger.payment_status()

        self._transition(reservation, ReservationStatus.REJECTED, pending_events, notes, actor.user_id)

    def _issue_refund(self, reservation_id, actor: Actor, amount, transaction_id) -> Reservation:
        if not actor.is_admin:
            raise Unauthorized("Only administrators can issue refunds", reservation_id=reservation_id)

        with self.locks.reservations.hold(reservation_id):
            reservation = self._load(reservation_id)
            if reservation.status != ReservationStatus.CANCELLED:
                raise InvalidTransition(
                    reservation.status.value,
                    ReservationStatus.REFUNDED.value,
                    reservation_id=reservation_id
                )

            pending_events: List[ReservationEvent] = []
            ledger = PaymentLedger(reservation.ledger, reservation.total_amount)
            refundable = max(ledger.total_paid(), Decimal('0'))
            if refundable == 0 and not ledger.has_refunds():
                raise InvalidAmount("There are no payments to refund", reservation_id=reservation_id)
            amount = refundable if amount is None else round_money(amount)
            if amount > refundable:
                amount = refundable

            if amount > 0:
                entry = ledger.add_refund(amount, transaction_id, now=self.clock.now())
                pending_events.append(
                    self._event(reservation, "refund_recorded", reservation.status, amount=entry.amount)
                )
            reservation.payment_status = ledger.payment_status()

            if reservation.payment_status == PaymentStatus.REFUNDED:
                self._transition(
                    reservation,
                    ReservationStatus.REFUNDED,
                    pending_events,
                    "Refund issued",
                    actor.user_id
                )
            self.repository.save(reservation)

        self._publish(pending_events)
        return reservation

    # Explicit status changes

    def _change_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        actor: Actor,
        notes: Optional[str]
    ) -> Reservation:
        if not actor.is_admin:
            raise Unauthorized("Only administrators can change reservation status", reservation_id=reservation_id)

        if new_status == ReservationStatus.REFUNDED:
            return self._issue_refund(reservation_id, actor, None, None)

        with self.locks.reservations.hold(reservation_id):
            reservation = self._load(reservation_id)
            pending_events: List[ReservationEvent] = []

            if new_status == ReservationStatus.CANCELLED and reservation.status != new_status:
                self._apply_cancellation(reservation, actor, notes, pending_events)
            elif new_status == ReservationStatus.REJECTED and reservation.status != new_status:
                self._apply_rejection(reservation, actor, notes, pending_events)
            else:
                self._transition(reservation, new_status, pending_events, notes, actor.user_id)

            if pending_events:
                self.repository.save(reservation)

        self._publish(pending_events)
        return reservation
