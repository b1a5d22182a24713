"""Seat accounting for route time slots.

Confirmed and completed bookings hold seats. ``Route.tickets_sold`` is a
cached counter kept in step with those bookings; the booking rows remain
the source of truth for every capacity decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from catalog.models import Route
from core.errors import CapacityExceeded, InvalidRequest, ItemNotFound

from .models import Booking

logger = logging.getLogger(__name__)

COUNTED_STATUSES = (
    Booking.Status.CONFIRMED,
    Booking.Status.COMPLETED,
)


@dataclass(frozen=True)
class Reservation:
    route: Route
    time_slot: str
    quantity: int
    sold_before: int

    @property
    def remaining(self) -> int:
        return max(0, self.route.max_capacity_per_slot - self.sold_before - self.quantity)


def _counted_bookings(route_id: int):
    return Booking.objects.filter(route_id=route_id, status__in=COUNTED_STATUSES)


def sold_quantity(route: Route, time_slot: str) -> int:
    """Return tickets held by confirmed/completed bookings for one slot."""
    return _counted_bookings(route.pk).filter(time_slot=time_slot).aggregate(
        total=Coalesce(Sum("quantity"), Value(0))
    )["total"]


def total_sold(route: Route) -> int:
    return _counted_bookings(route.pk).aggregate(total=Coalesce(Sum("quantity"), Value(0)))["total"]


def _validate(route: Route, time_slot: str, quantity: int) -> None:
    if quantity is None or int(quantity) < 1:
        raise InvalidRequest("quantity must be at least 1.")
    if not route.has_time_slot(time_slot):
        raise InvalidRequest(f"Unknown time slot '{time_slot}' for this route.")


def check_capacity(route: Route, time_slot: str, quantity: int) -> int:
    """
    Non-locking pre-check used before sending the user to payment.

    Returns the seats that would remain. The authoritative check happens again
    in ``reserve`` when the payment settles.
    """
    _validate(route, time_slot, quantity)
    sold = sold_quantity(route, time_slot)
    available = max(0, route.max_capacity_per_slot - sold)
    if quantity > available:
        raise CapacityExceeded(
            f"Only {available} seat(s) left for {time_slot}.",
            available=available,
        )
    return available - quantity


def reserve(route_id: int, time_slot: str, quantity: int) -> Reservation:
    """
    Lock the route row and claim ``quantity`` seats in ``time_slot``.

    Must run inside the transaction that inserts the booking so the check and
    the insert are serialized by the same row lock.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("reserve() must be called inside transaction.atomic().")

    try:
        route = Route.objects.select_for_update().get(pk=route_id)
    except Route.DoesNotExist:
        raise ItemNotFound("Route not found.")

    _validate(route, time_slot, quantity)
    sold = sold_quantity(route, time_slot)
    available = max(0, route.max_capacity_per_slot - sold)
    if quantity > available:
        logger.info(
            "capacity: slot full",
            extra={
                "route_id": route.pk,
                "time_slot": time_slot,
                "requested": quantity,
                "available": available,
            },
        )
        raise CapacityExceeded(
            f"Only {available} seat(s) left for {time_slot}.",
            available=available,
        )

    Route.objects.filter(pk=route.pk).update(
        tickets_sold=F("tickets_sold") + quantity,
        updated_at=timezone.now(),
    )
    route.refresh_from_db(fields=["tickets_sold", "updated_at"])
    return Reservation(route=route, time_slot=time_slot, quantity=quantity, sold_before=sold)


def release(booking: Booking, *, new_status: str) -> bool:
    """
    Move a seat-holding booking to ``new_status`` and give its seats back.

    Returns False when the booking no longer held seats, so a repeated call
    never decrements the counter twice.
    """
    updated = Booking.objects.filter(pk=booking.pk, status__in=COUNTED_STATUSES).update(
        status=new_status,
        updated_at=timezone.now(),
    )
    if not updated:
        return False

    Route.objects.filter(pk=booking.route_id, tickets_sold__gte=booking.quantity).update(
        tickets_sold=F("tickets_sold") - booking.quantity,
        updated_at=timezone.now(),
    )
    booking.status = new_status
    logger.info(
        "capacity: released seats",
        extra={"booking_id": booking.pk, "route_id": booking.route_id, "quantity": booking.quantity},
    )
    return True


def is_confirmed(route: Route) -> bool:
    """A route runs once tickets sold across all slots reach its minimum threshold."""
    return total_sold(route) >= route.min_threshold


def available_seats(route: Route) -> dict[str, int]:
    """Return remaining seats per time slot."""
    sold_by_slot = dict(
        _counted_bookings(route.pk)
        .values("time_slot")
        .annotate(total=Sum("quantity"))
        .values_list("time_slot", "total")
    )
    return {
        slot: max(0, route.max_capacity_per_slot - (sold_by_slot.get(slot) or 0))
        for slot in route.time_slots or []
    }
