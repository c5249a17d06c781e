import random
from datetime import datetime, timedelta, timezone

import pytest

from src.bookings.schemas import BookingUpdateRequest
from src.hiring.schemas import HiringUpdateRequest
from src.reservations.exceptions import InvalidWindow
from src.reservations.overlap import conflicts, find_conflicts, windows_overlap
from src.reservations.schemas import Reservation, ReservationKind, ReservationStatus, TimeWindow

from tests.conftest import NOW

BASE = datetime(2026, 10, 5, 8, 0)


def window(start_hours, end_hours):
    return TimeWindow(start=BASE + timedelta(hours=start_hours), end=BASE + timedelta(hours=end_hours))


def reservation(reservation_id, win, status=ReservationStatus.PENDING):
    return Reservation(
        id=reservation_id,
        reference=f"BK-{reservation_id}",
        kind=ReservationKind.BOOKING,
        user_id="user-1",
        bus_id="bus-1",
        window=win,
        status=status,
        created_at=BASE,
        updated_at=BASE
    )


def test_disjoint_windows_do_not_overlap():
    assert not windows_overlap(window(0, 2), window(3, 5))
    assert not windows_overlap(window(3, 5), window(0, 2))


def test_touching_boundaries_overlap():
    assert windows_overlap(window(0, 2), window(2, 4))
    assert windows_overlap(window(2, 4), window(0, 2))


def test_contained_window_overlaps():
    assert windows_overlap(window(0, 10), window(3, 4))


def test_conflicts_with_any_existing_window():
    existing = [window(0, 1), window(5, 6)]
    assert conflicts(existing, window(6, 8))
    assert not conflicts(existing, window(2, 4))
    assert not conflicts([], window(2, 4))


def test_overlap_matches_interval_definition():
    rng = random.Random(20261005)
    for _ in range(500):
        a_start, a_len, b_start, b_len = (rng.randint(0, 48) for _ in range(4))
        first = window(a_start, a_start + a_len)
        second = window(b_start, b_start + b_len)
        expected = max(first.start, second.start) <= min(first.end, second.end)
        assert windows_overlap(first, second) == expected
        assert windows_overlap(second, first) == expected


def test_find_conflicts_ignores_non_live_reservations():
    candidate = window(1, 3)
    reservations = [
        reservation("live", window(0, 2)),
        reservation("cancelled", window(0, 2), ReservationStatus.CANCELLED),
        reservation("completed", window(0, 2), ReservationStatus.COMPLETED),
        reservation("later", window(5, 6)),
    ]

    found = find_conflicts(reservations, candidate)

    assert [r.id for r in found] == ["live"]


def test_find_conflicts_excludes_reservation_being_updated():
    reservations = [reservation("self", window(0, 2))]
    assert find_conflicts(reservations, window(1, 3), exclude_id="self") == []


def test_windows_are_normalised_to_utc():
    aware = TimeWindow(
        start=datetime(2026, 10, 5, 10, 0, tzinfo=timezone(timedelta(hours=2))),
        end=datetime(2026, 10, 5, 10, 0, tzinfo=timezone.utc)
    )

    assert aware.start == BASE
    assert aware.end == BASE + timedelta(hours=2)
    assert windows_overlap(aware, window(1, 3))


def test_incomparable_windows_are_an_invalid_window():
    naive = window(0, 2)
    aware = TimeWindow.model_construct(
        start=BASE.replace(tzinfo=timezone.utc),
        end=(BASE + timedelta(hours=2)).replace(tzinfo=timezone.utc)
    )

    with pytest.raises(InvalidWindow):
        windows_overlap(naive, aware)


def test_live_reservations_on_a_bus_never_overlap(
    booking_service, hiring_service, repository, booking_request, hiring_request, owner, admin
):
    rng = random.Random(1013)
    buses = ["bus-1", "bus-2"]
    outcomes = {"created": 0, "rejected": 0, "updated": 0, "cancelled": 0}

    def random_start():
        return NOW + timedelta(hours=rng.randint(30, 24 * 30))

    def existing(kind):
        return [r for r in repository.all() if r.kind == kind and r.is_live]

    for _ in range(300):
        action = rng.choice(["book", "hire", "move_booking", "move_hiring", "cancel"])

        if action == "book":
            result = booking_service.create_booking(
                booking_request(departure_at=random_start(), bus_id=rng.choice(buses)), owner
            )
        elif action == "hire":
            result = hiring_service.create_hiring(
                hiring_request(
                    start_at=random_start(),
                    duration=timedelta(hours=rng.randint(1, 96)),
                    bus_id=rng.choice(buses),
                    passenger_count=2
                ),
                owner
            )
        elif action == "move_booking" and existing(ReservationKind.BOOKING):
            target = rng.choice(existing(ReservationKind.BOOKING))
            result = booking_service.update_booking(
                target.id,
                BookingUpdateRequest(departure_at=random_start(), bus_id=rng.choice(buses)),
                owner
            )
        elif action == "move_hiring" and existing(ReservationKind.HIRING):
            target = rng.choice(existing(ReservationKind.HIRING))
            start = random_start()
            result = hiring_service.update_hiring(
                target.id,
                HiringUpdateRequest(
                    start_at=start,
                    end_at=start + timedelta(hours=rng.randint(1, 96)),
                    bus_id=rng.choice(buses)
                ),
                owner
            )
        elif action == "cancel" and [r for r in repository.all() if r.is_live]:
            target = rng.choice([r for r in repository.all() if r.is_live])
            service = booking_service if target.kind == ReservationKind.BOOKING else hiring_service
            result = service.cancel(target.id, admin)
            assert result.ok, result.message
            outcomes["cancelled"] += 1
            continue
        else:
            continue

        if result.ok:
            outcomes["updated" if action.startswith("move") else "created"] += 1
        else:
            assert result.error_kind == "ResourceUnavailable", result.message
            outcomes["rejected"] += 1

    live = [r for r in repository.all() if r.is_live]
    for i, first in enumerate(live):
        for second in live[i + 1:]:
            if first.bus_id == second.bus_id:
                assert not windows_overlap(first.window, second.window), (first.reference, second.reference)

    assert all(count > 0 for count in outcomes.values()), outcomes
    assert {r.kind for r in live} == {ReservationKind.BOOKING, ReservationKind.HIRING}
