"""Public listings of bookable shuttle routes and partner deals."""

from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from bookings import capacity

from .services import list_active_deals_by_date, list_active_routes_by_date


def _route_payload(route) -> dict:
    return {
        "id": route.pk,
        "name": route.display_name,
        "date": route.date.isoformat(),
        "price": f"{route.price}",
        "timeSlots": list(route.time_slots or []),
        "seatsLeft": capacity.available_seats(route),
        "isConfirmed": capacity.is_confirmed(route),
    }


def _deal_payload(deal) -> dict:
    return {
        "id": deal.pk,
        "title": deal.title,
        "location": deal.location_name,
        "date": deal.deal_date.isoformat() if deal.deal_date else None,
        "price": f"{deal.price}",
        "isFree": deal.price == 0,
    }


@api_view(["GET"])
@permission_classes([AllowAny])
def routes(request):
    """Active routes by date with per-slot seats left."""
    return Response([_route_payload(route) for route in list_active_routes_by_date()])


@api_view(["GET"])
@permission_classes([AllowAny])
def deals(request):
    return Response([_deal_payload(deal) for deal in list_active_deals_by_date()])
