"""Domain helpers for booking state checks."""

from __future__ import annotations

from core.errors import InvalidState

from .models import Booking


def is_refundable(booking: Booking) -> bool:
    """Confirmed bookings and paid-but-flagged pending bookings can be refunded."""
    if booking.status == Booking.Status.CONFIRMED:
        return True
    return booking.awaiting_reconciliation()


def assert_refundable(booking: Booking) -> None:
    if not is_refundable(booking):
        raise InvalidState(f"Booking #{booking.pk} is {booking.status} and cannot be refunded.")


def assert_awaiting_reconciliation(booking: Booking) -> None:
    if not booking.awaiting_reconciliation():
        raise InvalidState(f"Booking #{booking.pk} is not awaiting reconciliation.")


def refundable_bookings_for_route(route_id: int):
    """Bookings of a route that a bulk refund should cover, oldest first."""
    return (
        Booking.objects.filter(route_id=route_id, status=Booking.Status.CONFIRMED)
        | Booking.objects.filter(
            route_id=route_id,
            status=Booking.Status.PENDING,
            needs_reconciliation=True,
        )
    ).order_by("created_at", "id")
