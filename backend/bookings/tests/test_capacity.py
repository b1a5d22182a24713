import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from django.db import connection, connections, transaction

from bookings import capacity
from bookings.models import Booking
from catalog.models import Route
from core.errors import CapacityExceeded, InvalidRequest

pytestmark = pytest.mark.django_db


def test_sold_quantity_counts_only_confirmed_and_completed(booking_factory, route):
    booking_factory(quantity=3)
    booking_factory(quantity=2, status=Booking.Status.COMPLETED)
    booking_factory(quantity=4, status=Booking.Status.REFUNDED)
    booking_factory(quantity=5, status=Booking.Status.PENDING, needs_reconciliation=True)
    booking_factory(quantity=1, time_slot="20:00")

    assert capacity.sold_quantity(route, "18:00") == 5
    assert capacity.sold_quantity(route, "20:00") == 1


def test_reserve_increments_cached_counter(route):
    with transaction.atomic():
        reservation = capacity.reserve(route.pk, "18:00", 4)

    route.refresh_from_db()
    assert route.tickets_sold == 4
    assert reservation.sold_before == 0
    assert reservation.remaining == 6


def test_reserve_rejects_oversell(booking_factory, route):
    booking_factory(quantity=8)

    with pytest.raises(CapacityExceeded) as excinfo:
        with transaction.atomic():
            capacity.reserve(route.pk, "18:00", 3)

    assert excinfo.value.available == 2
    route.refresh_from_db()
    assert route.tickets_sold == 0


def test_reserve_allows_exact_fill(booking_factory, route):
    booking_factory(quantity=8)

    with transaction.atomic():
        capacity.reserve(route.pk, "18:00", 2)

    with pytest.raises(CapacityExceeded):
        with transaction.atomic():
            capacity.reserve(route.pk, "18:00", 1)


def test_reserve_unknown_time_slot(route):
    with pytest.raises(InvalidRequest):
        with transaction.atomic():
            capacity.reserve(route.pk, "23:59", 1)


def test_check_capacity_is_per_slot(booking_factory, route):
    booking_factory(quantity=10)

    with pytest.raises(CapacityExceeded):
        capacity.check_capacity(route, "18:00", 1)
    assert capacity.check_capacity(route, "20:00", 10) == 0


def test_release_returns_seats_once(booking_factory, route):
    Route.objects.filter(pk=route.pk).update(tickets_sold=3)
    booking = booking_factory(quantity=3)

    assert capacity.release(booking, new_status=Booking.Status.REFUNDED) is True
    assert capacity.release(booking, new_status=Booking.Status.REFUNDED) is False

    route.refresh_from_db()
    booking.refresh_from_db()
    assert route.tickets_sold == 0
    assert booking.status == Booking.Status.REFUNDED


def test_release_ignores_bookings_that_hold_no_seats(booking_factory, route):
    booking = booking_factory(status=Booking.Status.PENDING, needs_reconciliation=True)

    assert capacity.release(booking, new_status=Booking.Status.CANCELLED) is False
    booking.refresh_from_db()
    assert booking.status == Booking.Status.PENDING


def test_is_confirmed_uses_min_threshold_across_slots(booking_factory, route):
    booking_factory(quantity=3)
    assert capacity.is_confirmed(route) is False

    booking_factory(quantity=2, time_slot="20:00")
    assert capacity.is_confirmed(route) is True


def test_available_seats_map(booking_factory, route):
    booking_factory(quantity=4)
    booking_factory(quantity=1, status=Booking.Status.CANCELLED, time_slot="20:00")

    assert capacity.available_seats(route) == {"18:00": 6, "20:00": 10}


@pytest.mark.django_db(transaction=True)
def test_parallel_reserves_stop_at_capacity(route, rider):
    if connection.vendor == "sqlite":
        pytest.skip("SQLite has no row-level locking")
    barrier = threading.Barrier(3)

    def _book_four():
        try:
            barrier.wait(timeout=5)
            with transaction.atomic():
                capacity.reserve(route.pk, "18:00", 4)
                Booking.objects.create(
                    user=rider,
                    route=route,
                    time_slot="18:00",
                    quantity=4,
                    status=Booking.Status.CONFIRMED,
                )
            return True
        except CapacityExceeded:
            return False
        finally:
            connections.close_all()

    with ThreadPoolExecutor(max_workers=3) as executor:
        results = [future.result(timeout=30) for future in [executor.submit(_book_four) for _ in range(3)]]

    assert results.count(True) == 2
    assert capacity.sold_quantity(route, "18:00") == 8
    route.refresh_from_db()
    assert route.tickets_sold == 8
