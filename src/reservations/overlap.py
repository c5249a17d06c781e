from typing import Iterable, List, Optional

from src.reservations.exceptions import InvalidWindow
from src.reservations.schemas import Reservation, TimeWindow


def windows_overlap(first: TimeWindow, second: TimeWindow) -> bool:
    """Closed-interval overlap; windows touching at a boundary conflict"""
    try:
        return first.start <= second.end and second.start <= first.end
    except TypeError as e:
        raise InvalidWindow(f"Incomparable reservation windows: {e}")


def conflicts(existing_windows: Iterable[TimeWindow], candidate: TimeWindow) -> bool:
    """True if the candidate window overlaps any existing window"""
    return any(windows_overlap(window, candidate) for window in existing_windows)


def find_conflicts(
    reservations: Iterable[Reservation],
    candidate: TimeWindow,
    exclude_id: Optional[str] = None
) -> List[Reservation]:
    """Return live reservations whose window overlaps the candidate.

    The reservation identified by ``exclude_id`` (the one being updated)
    never conflicts with itself.
    """
    return [
        reservation for reservation in reservations
        if reservation.id != exclude_id
        and reservation.is_live
        and windows_overlap(reservation.window, candidate)
    ]
