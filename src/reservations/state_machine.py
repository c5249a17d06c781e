from typing import Dict, FrozenSet

from src.reservations.exceptions import InvalidTransition
from src.reservations.schemas import ReservationKind, ReservationStatus

S = ReservationStatus

BOOKING_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED, S.NO_SHOW}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.CANCELLED: frozenset({S.REFUNDED}),  # refund bookkeeping only
    S.COMPLETED: frozenset(),
    S.NO_SHOW: frozenset(),
    S.REFUNDED: frozenset(),
}

HIRING_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    S.PENDING: frozenset({S.APPROVED, S.CONFIRMED, S.REJECTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.CONFIRMED, S.IN_PROGRESS, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
    S.CANCELLED: frozenset({S.REFUNDED}),  # refund bookkeeping only
    S.REJECTED: frozenset(),
    S.COMPLETED: frozenset(),
    S.REFUNDED: frozenset(),
}

TERMINAL_STATUSES: Dict[ReservationKind, FrozenSet[ReservationStatus]] = {
    ReservationKind.BOOKING: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW, S.REFUNDED}),
    ReservationKind.HIRING: frozenset({S.COMPLETED, S.REJECTED, S.CANCELLED, S.REFUNDED}),
}

_TRANSITIONS = {
    ReservationKind.BOOKING: BOOKING_TRANSITIONS,
    ReservationKind.HIRING: HIRING_TRANSITIONS,
}


def is_terminal(kind: ReservationKind, status: ReservationStatus) -> bool:
    return status in TERMINAL_STATUSES[kind]


def can_transition(kind: ReservationKind, current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in _TRANSITIONS[kind].get(current, frozenset())


def validate_transition(kind: ReservationKind, current: ReservationStatus, target: ReservationStatus) -> bool:
    """Check a status change.

    Returns False when the reservation is already in the target status (the
    change is a no-op), True when the transition is allowed, and raises
    InvalidTransition otherwise.
    """
    if current == target:
        return False
    if not can_transition(kind, current, target):
        raise InvalidTransition(current.value, target.value, kind=kind.value)
    return True
