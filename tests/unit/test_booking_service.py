import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.bookings.booking_service import BookingService
from src.bookings.schemas import BookingCreateRequest, BookingQuote, BookingUpdateRequest, Passenger
from src.pricing.schemas import BookingType, PassengerType
from src.reservations.schemas import PaymentStatus, ReservationStatus

from tests.conftest import NOW


def create(booking_service, booking_request, owner, **kwargs):
    result = booking_service.create_booking(booking_request(**kwargs), owner)
    assert result.ok, result.message
    return result.data


def paid_booking(booking_service, booking_request, owner, **kwargs):
    booking = create(booking_service, booking_request, owner, **kwargs)
    assert booking_service.record_payment(booking.id, booking.total_amount).ok
    return booking


# Creation

def test_create_booking_prices_and_stores(booking_service, booking_request, owner, repository):
    booking = create(booking_service, booking_request, owner)

    assert booking.status == ReservationStatus.PENDING
    assert booking.payment_status == PaymentStatus.UNPAID
    assert booking.total_amount == Decimal("200.00")
    assert booking.reference.startswith("BK-")
    assert booking.window.start == NOW + timedelta(hours=74)
    assert booking.window.end == NOW + timedelta(hours=76)
    assert repository.get(booking.id).total_amount == Decimal("200.00")
    assert [entry.status for entry in booking.status_history] == [ReservationStatus.PENDING]


def test_round_trip_window_covers_return_leg(booking_service, booking_request, owner):
    departure = NOW + timedelta(days=3)
    booking = create(
        booking_service, booking_request, owner,
        departure_at=departure,
        return_at=departure + timedelta(days=2),
        booking_type=BookingType.ROUND_TRIP
    )

    assert booking.window.end == departure + timedelta(days=2, hours=2)
    assert booking.total_amount == Decimal("400.00")


def test_round_trip_requires_return_after_departure(booking_service, booking_request, owner):
    result = booking_service.create_booking(
        booking_request(booking_type=BookingType.ROUND_TRIP, return_at=NOW), owner
    )
    assert result.error_kind == "InvalidWindow"

    result = booking_service.create_booking(booking_request(booking_type=BookingType.ROUND_TRIP), owner)
    assert result.error_kind == "InvalidWindow"


def test_unknown_route_or_bus(booking_service, booking_request, owner):
    assert booking_service.create_booking(booking_request(route_id="nope"), owner).error_kind == "NotFound"
    assert booking_service.create_booking(booking_request(bus_id="nope"), owner).error_kind == "NotFound"


def test_bus_in_maintenance_is_unavailable(booking_service, booking_request, owner):
    result = booking_service.create_booking(booking_request(bus_id="bus-3"), owner)
    assert result.error_kind == "ResourceUnavailable"
    assert result.context["bus_status"] == "maintenance"


def test_seat_checks(booking_service, booking_request, owner):
    too_many = booking_service.create_booking(booking_request(bus_id="bus-2", passengers=3), owner)
    assert too_many.error_kind == "ResourceUnavailable"

    duplicate = booking_service.create_booking(booking_request(passengers=[
        Passenger(name="Ann", seat_number="B1"),
        Passenger(name="Bob", seat_number="B1"),
    ]), owner)
    assert duplicate.error_kind == "ResourceUnavailable"
    assert duplicate.context["seats"] == ["B1"]


# Conflicts

def test_overlapping_booking_on_same_bus_conflicts(booking_service, booking_request, owner, other_user):
    first = create(booking_service, booking_request, owner)

    # Starts exactly when the first one arrives
    result = booking_service.create_booking(
        booking_request(departure_at=NOW + timedelta(hours=76)), other_user
    )

    assert result.error_kind == "ResourceUnavailable"
    assert result.context["conflicts"] == [first.reference]


def test_adjacent_booking_and_other_bus_are_available(booking_service, booking_request, owner):
    create(booking_service, booking_request, owner)
    create(booking_service, booking_request, owner, departure_at=NOW + timedelta(hours=76, minutes=1))
    create(booking_service, booking_request, owner, bus_id="bus-2")


def test_hiring_blocks_booking_on_same_bus(
    booking_service, hiring_service, booking_request, hiring_request, owner
):
    assert hiring_service.create_hiring(hiring_request(start_at=NOW + timedelta(hours=70)), owner).ok

    result = booking_service.create_booking(booking_request(), owner)
    assert result.error_kind == "ResourceUnavailable"


def test_cancelled_booking_releases_the_bus(booking_service, booking_request, owner):
    booking = create(booking_service, booking_request, owner)
    assert booking_service.cancel(booking.id, owner).ok

    create(booking_service, booking_request, owner)


def test_concurrent_creates_for_same_slot(repository, catalog, clock, events, booking_request, owner):
    booking_service = BookingService(repository, catalog, clock=clock, events=events)
    barrier = threading.Barrier(2)
    results = []

    def attempt():
        barrier.wait()
        results.append(booking_service.create_booking(booking_request(), owner))

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(result.ok for result in results) == [False, True]
    assert [r.error_kind for r in results if not r.ok] == ["ResourceUnavailable"]
    assert len(repository.all()) == 1


# Updates

def test_update_reprices_and_keeps_payment_status_consistent(booking_service, booking_request, owner):
    booking = paid_booking(booking_service, booking_request, owner)

    result = booking_service.update_booking(booking.id, BookingUpdateRequest(passengers=[
        Passenger(name="Ann", seat_number="C1"),
        Passenger(name="Bob", seat_number="C2"),
        Passenger(name="Cid", seat_number="C3", passenger_type=PassengerType.CHILD),
    ]), owner)

    assert result.ok
    assert result.data.total_amount == Decimal("250.00")
    assert result.data.payment_status == PaymentStatus.PARTIALLY_PAID
    assert result.data.status == ReservationStatus.CONFIRMED


def test_update_into_conflict_leaves_booking_untouched(
    booking_service, booking_request, owner, repository
):
    blocker = create(booking_service, booking_request, owner, departure_at=NOW + timedelta(days=6))
    booking = create(booking_service, booking_request, owner)

    result = booking_service.update_booking(
        booking.id, BookingUpdateRequest(departure_at=blocker.departure_at), owner
    )

    assert result.error_kind == "ResourceUnavailable"
    assert repository.get(booking.id).departure_at == booking.departure_at


def test_update_does_not_conflict_with_itself(booking_service, booking_request, owner):
    booking = create(booking_service, booking_request, owner)

    result = booking_service.update_booking(
        booking.id, BookingUpdateRequest(departure_at=booking.departure_at + timedelta(minutes=30)), owner
    )

    assert result.ok
    assert result.data.window.end == booking.window.end + timedelta(minutes=30)


def test_update_by_other_user_is_unauthorized(booking_service, booking_request, owner, other_user):
    booking = create(booking_service, booking_request, owner)
    result = booking_service.update_booking(booking.id, BookingUpdateRequest(is_holiday=True), other_user)
    assert result.error_kind == "Unauthorized"


# Payments

def test_partial_payment_keeps_booking_pending(booking_service, booking_request, owner, events):
    booking = create(booking_service, booking_request, owner)

    receipt = booking_service.record_payment(booking.id, Decimal("50")).data

    assert receipt.payment_status == PaymentStatus.PARTIALLY_PAID
    assert receipt.reservation_status == ReservationStatus.PENDING
    assert receipt.remaining_balance == Decimal("150.00")
    assert [e.event_type for e in events.events] == ["payment_recorded"]


def test_full_payment_auto_confirms(booking_service, booking_request, owner, events):
    booking = create(booking_service, booking_request, owner)
    booking_service.record_payment(booking.id, Decimal("50"))

    receipt = booking_service.record_payment(booking.id, Decimal("150")).data

    assert receipt.payment_status == PaymentStatus.PAID
    assert receipt.reservation_status == ReservationStatus.CONFIRMED
    status_events = events.of_type("status_changed")
    assert len(status_events) == 1
    assert status_events[0].old_status == ReservationStatus.PENDING
    assert status_events[0].new_status == ReservationStatus.CONFIRMED


def test_payment_errors(booking_service, booking_request, owner):
    booking = paid_booking(booking_service, booking_request, owner)

    assert booking_service.record_payment(booking.id, Decimal("10")).error_kind == "AlreadySettled"
    assert booking_service.record_payment("missing", Decimal("10")).error_kind == "NotFound"

    other = create(booking_service, booking_request, owner, bus_id="bus-2")
    assert booking_service.record_payment(other.id, Decimal("-1")).error_kind == "InvalidAmount"


def test_confirming_twice_is_a_noop(booking_service, booking_request, owner, admin, events):
    booking = paid_booking(booking_service, booking_request, owner)
    published = len(events.events)

    result = booking_service.change_status(booking.id, ReservationStatus.CONFIRMED, admin)

    assert result.ok
    assert result.data.status == ReservationStatus.CONFIRMED
    assert len(events.events) == published
    assert len(result.data.status_history) == 2


# Cancellation

def test_cancel_30_hours_out_refunds_half(booking_service, booking_request, owner, clock, events):
    booking = paid_booking(booking_service, booking_request, owner)
    clock.advance(hours=44)

    result = booking_service.cancel(booking.id, owner, "Change of plans")

    assert result.ok
    outcome = result.data
    assert outcome.refund_percentage == Decimal("0.50")
    assert outcome.refund_amount == Decimal("100.00")
    assert outcome.payment_status == PaymentStatus.PARTIALLY_REFUNDED
    assert outcome.reservation_status == ReservationStatus.CANCELLED

    stored = booking_service.get(booking.id).data
    assert [entry.amount for entry in stored.ledger] == [Decimal("200.00"), Decimal("-100.00")]
    assert stored.cancellation.reason == "Change of plans"
    assert events.of_type("refund_recorded")[0].amount == Decimal("-100.00")


def test_cancel_50_hours_out_refunds_three_quarters(booking_service, booking_request, owner, clock):
    booking = paid_booking(booking_service, booking_request, owner)
    clock.advance(hours=24)

    outcome = booking_service.cancel(booking.id, owner).data

    assert outcome.refund_amount == Decimal("150.00")
    assert outcome.payment_status == PaymentStatus.PARTIALLY_REFUNDED


def test_early_cancellation_refunds_everything(booking_service, booking_request, owner):
    booking = paid_booking(booking_service, booking_request, owner)

    outcome = booking_service.cancel(booking.id, owner).data

    assert outcome.refund_amount == Decimal("200.00")
    assert outcome.payment_status == PaymentStatus.REFUNDED
    assert outcome.reservation_status == ReservationStatus.REFUNDED


def test_round_trip_refund_uses_departure(booking_service, booking_request, owner, clock):
    departure = NOW + timedelta(hours=60)
    booking = paid_booking(
        booking_service, booking_request, owner,
        departure_at=departure,
        return_at=departure + timedelta(days=3),
        booking_type=BookingType.ROUND_TRIP
    )

    outcome = booking_service.cancel(booking.id, owner).data

    assert outcome.refund_percentage == Decimal("0.75")
    assert outcome.refund_amount == Decimal("300.00")


def test_late_cancellation_by_owner_is_unauthorized(booking_service, booking_request, owner, clock):
    booking = paid_booking(booking_service, booking_request, owner)
    clock.advance(hours=64)

    result = booking_service.cancel(booking.id, owner)

    assert result.error_kind == "Unauthorized"
    assert booking_service.get(booking.id).data.status == ReservationStatus.CONFIRMED


def test_late_cancellation_by_admin_refunds_nothing(booking_service, booking_request, owner, admin, clock):
    booking = paid_booking(booking_service, booking_request, owner)
    clock.advance(hours=64)

    outcome = booking_service.cancel(booking.id, admin).data

    assert outcome.refund_amount == Decimal("0.00")
    assert outcome.reservation_status == ReservationStatus.CANCELLED
    assert outcome.payment_status == PaymentStatus.PAID


def test_cancel_unpaid_booking(booking_service, booking_request, owner):
    booking = create(booking_service, booking_request, owner)

    outcome = booking_service.cancel(booking.id, owner).data

    assert outcome.refund_amount == Decimal("0.00")
    assert outcome.reservation_status == ReservationStatus.CANCELLED
    assert outcome.payment_status == PaymentStatus.UNPAID


def test_cancel_twice_is_an_invalid_transition(booking_service, booking_request, owner):
    booking = create(booking_service, booking_request, owner)
    booking_service.cancel(booking.id, owner)

    result = booking_service.cancel(booking.id, owner)

    assert result.error_kind == "InvalidTransition"
    assert booking_service.record_payment(booking.id, Decimal("10")).error_kind == "InvalidTransition"


def test_cancel_by_other_user_is_unauthorized(booking_service, booking_request, owner, other_user):
    booking = create(booking_service, booking_request, owner)
    assert booking_service.cancel(booking.id, other_user).error_kind == "Unauthorized"


# Admin operations

def test_only_admins_change_status(booking_service, booking_request, owner, admin):
    booking = create(booking_service, booking_request, owner)

    assert booking_service.change_status(booking.id, ReservationStatus.NO_SHOW, owner).error_kind == "Unauthorized"
    assert booking_service.change_status(booking.id, ReservationStatus.APPROVED, admin).error_kind == "InvalidTransition"

    result = booking_service.change_status(booking.id, ReservationStatus.NO_SHOW, admin, "Did not board")
    assert result.data.status == ReservationStatus.NO_SHOW
    assert result.data.status_history[-1].notes == "Did not board"


def test_issue_refund_after_late_admin_cancellation(booking_service, booking_request, owner, admin, clock):
    booking = paid_booking(booking_service, booking_request, owner)
    clock.advance(hours=64)
    booking_service.cancel(booking.id, admin)

    assert booking_service.issue_refund(booking.id, owner).error_kind == "Unauthorized"

    partial = booking_service.issue_refund(booking.id, admin, Decimal("50")).data
    assert partial.payment_status == PaymentStatus.PARTIALLY_REFUNDED
    assert partial.status == ReservationStatus.CANCELLED

    rest = booking_service.issue_refund(booking.id, admin).data
    assert rest.payment_status == PaymentStatus.REFUNDED
    assert rest.status == ReservationStatus.REFUNDED


def test_issue_refund_requires_cancellation(booking_service, booking_request, owner, admin):
    booking = paid_booking(booking_service, booking_request, owner)
    assert booking_service.issue_refund(booking.id, admin).error_kind == "InvalidTransition"


def test_list_and_quote(booking_service, booking_request, owner, other_user):
    create(booking_service, booking_request, owner)
    create(booking_service, booking_request, owner, bus_id="bus-2")
    create(booking_service, booking_request, other_user, departure_at=NOW + timedelta(days=9))

    assert len(booking_service.list_for_user(owner.user_id).data) == 2

    quote = booking_service.quote_fare(BookingQuote(
        route_id="route-1",
        departure_at=NOW + timedelta(days=19),
        booking_type=BookingType.ROUND_TRIP
    )).data
    assert quote.total == Decimal("240.00")


# Offset-aware instants

def test_offset_departure_is_stored_as_utc(booking_service, booking_request, owner):
    plus_two = timezone(timedelta(hours=2))
    departure = (NOW + timedelta(hours=80)).replace(tzinfo=timezone.utc).astimezone(plus_two)

    booking = booking_service.create_booking(booking_request(departure_at=departure), owner).data

    assert booking.departure_at == NOW + timedelta(hours=80)
    assert booking.departure_at.tzinfo is None
    assert booking.window.start.tzinfo is None


def test_cancel_booking_created_with_utc_departure(booking_service, booking_request, owner):
    departure = (NOW + timedelta(hours=80)).replace(tzinfo=timezone.utc)
    booking = booking_service.create_booking(booking_request(departure_at=departure), owner).data
    booking_service.record_payment(booking.id, Decimal("200"))

    result = booking_service.cancel(booking.id, owner)

    assert result.ok, result.message
    assert result.data.refund_percentage == Decimal("1.00")
    assert result.data.refund_amount == Decimal("200.00")


def test_offset_booking_conflicts_with_naive_booking(booking_service, booking_request, owner, other_user):
    naive = booking_service.create_booking(booking_request(), owner).data

    same_instant = (NOW + timedelta(hours=74, minutes=30)).replace(tzinfo=timezone.utc)
    clash = booking_service.create_booking(booking_request(departure_at=same_instant), other_user)
    assert clash.error_kind == "ResourceUnavailable"
    assert clash.context["conflicts"] == [naive.reference]

    later = (NOW + timedelta(hours=90)).replace(tzinfo=timezone(timedelta(hours=-5)))
    assert booking_service.create_booking(booking_request(departure_at=later), other_user).ok


def test_request_parses_iso_offsets():
    request = BookingCreateRequest(
        route_id="route-1",
        bus_id="bus-1",
        departure_at="2026-10-08T14:00:00+02:00",
        return_at="2026-10-09T12:00:00Z",
        passengers=[Passenger(name="Ann", seat_number="A1")]
    )

    assert request.departure_at == datetime(2026, 10, 8, 12, 0)
    assert request.return_at == datetime(2026, 10, 9, 12, 0)


def test_passenger_type_follows_age():
    assert Passenger(name="Kid", seat_number="A1", age=8).passenger_type == PassengerType.CHILD
    assert Passenger(name="Gran", seat_number="A2", age=67).passenger_type == PassengerType.SENIOR
    assert Passenger(name="Ann", seat_number="A3", age=35).passenger_type == PassengerType.ADULT
    assert Passenger(name="Bob", seat_number="A4").passenger_type == PassengerType.ADULT
    assert Passenger(
        name="Teen", seat_number="A5", age=10, passenger_type=PassengerType.ADULT
    ).passenger_type == PassengerType.ADULT

    with pytest.raises(ValueError):
        Passenger(name="Nobody", seat_number="A6", age=130)


def test_age_derived_discounts_are_priced(booking_service, booking_request, owner):
    passengers = [
        Passenger(name="Kid", seat_number="A1", age=6),
        Passenger(name="Gran", seat_number="A2", age=70),
    ]
    booking = booking_service.create_booking(booking_request(passengers=passengers), owner).data

    # 100 * 0.5 child + 100 * 0.7 senior
    assert booking.total_amount == Decimal("120.00")
