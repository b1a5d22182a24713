"""Ride bid endpoints for drivers and riders."""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.errors import BookingCoreError

from . import bids
from .models import DriverBid, RideRequest

logger = logging.getLogger(__name__)


def _error(message: str, code: int = status.HTTP_400_BAD_REQUEST) -> Response:
    return Response({"error": message}, status=code)


def _bid_payload(bid: DriverBid) -> dict:
    return {
        "id": bid.id,
        "rideRequestId": bid.ride_request_id,
        "driverId": bid.driver_id,
        "driverName": bid.driver.display_name(),
        "amount": f"{bid.amount}",
        "status": bid.status,
        "notes": bid.notes,
        "createdAt": bid.created_at.isoformat(),
        "updatedAt": bid.updated_at.isoformat(),
    }


def _can_decide(user, bid: DriverBid) -> bool:
    return user.is_staff or bid.ride_request.requester_id == user.id


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def ride_bids(request, ride_request_id: int):
    """List bids on a ride request or place/replace the caller's bid."""
    if request.method == "GET":
        if not RideRequest.objects.filter(pk=ride_request_id).exists():
            return _error("Ride request not found.")
        return Response([_bid_payload(bid) for bid in bids.list_bids(ride_request_id)])

    try:
        bid = bids.place_bid(
            ride_request_id,
            request.user,
            request.data.get("amount"),
            request.data.get("notes") or "",
        )
    except BookingCoreError as exc:
        return _error(str(exc))
    bid = DriverBid.objects.select_related("driver").get(pk=bid.pk)
    return Response(_bid_payload(bid), status=status.HTTP_201_CREATED)


@api_view(["DELETE"])
@permission_classes([IsAuthenticated])
def withdraw_bid(request, bid_id: int):
    try:
        bids.withdraw_bid(bid_id, request.user)
    except BookingCoreError as exc:
        return _error(str(exc))
    return Response(status=status.HTTP_204_NO_CONTENT)


def _decide(request, bid_id: int, action):
    bid = DriverBid.objects.select_related("ride_request").filter(pk=bid_id).first()
    if bid is None:
        return _error(f"Bid #{bid_id} not found.")
    if not _can_decide(request.user, bid):
        return _error("Only the rider who requested this ride can do that.", status.HTTP_403_FORBIDDEN)
    try:
        bid = action(bid_id)
    except BookingCoreError as exc:
        return _error(str(exc))
    bid = DriverBid.objects.select_related("driver").get(pk=bid.pk)
    return Response(_bid_payload(bid))


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def accept_bid(request, bid_id: int):
    return _decide(request, bid_id, bids.accept_bid)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def reject_bid(request, bid_id: int):
    return _decide(request, bid_id, bids.reject_bid)
