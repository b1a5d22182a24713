"""Driver bids on private ride requests.

At most one bid exists per (ride request, driver); placing a bid again
replaces the driver's amount and notes. Writes lock the ride request row so
concurrent bids and acceptance on the same request are serialized.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from core.errors import BidNotFound, InvalidRequest, InvalidState

from .models import DriverBid, RideRequest

logger = logging.getLogger(__name__)


def _parse_amount(amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidRequest("amount must be a number.")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidRequest("amount must be a number.")
    if not value.is_finite() or value <= 0:
        raise InvalidRequest("amount must be greater than zero.")
    return value.quantize(Decimal("0.01"))


def _lock_ride_request(ride_request_id) -> RideRequest:
    try:
        return RideRequest.objects.select_for_update().get(pk=int(ride_request_id))
    except (RideRequest.DoesNotExist, TypeError, ValueError):
        raise InvalidRequest("Ride request not found.")


def _get_bid(bid_id, *, for_update: bool = False) -> DriverBid:
    queryset = DriverBid.objects.select_related("ride_request")
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=int(bid_id))
    except (DriverBid.DoesNotExist, TypeError, ValueError):
        raise BidNotFound(f"Bid #{bid_id} not found.")


def place_bid(ride_request_id, driver, amount, notes: str = "") -> DriverBid:
    """Create or replace ``driver``'s bid on an open ride request."""
    if not getattr(driver, "is_driver", False):
        raise InvalidRequest("Only drivers can bid on rides.")
    value = _parse_amount(amount)

    with transaction.atomic():
        ride_request = _lock_ride_request(ride_request_id)
        if ride_request.status != RideRequest.Status.OPEN:
            raise InvalidState(f"Ride request is {ride_request.status}.")

        bid = DriverBid.objects.filter(ride_request=ride_request, driver=driver).first()
        if bid is None:
            bid = DriverBid.objects.create(
                ride_request=ride_request,
                driver=driver,
                amount=value,
                notes=notes or "",
            )
            created = True
        else:
            if bid.status == DriverBid.Status.ACCEPTED:
                raise InvalidState("An accepted bid cannot be replaced.")
            bid.amount = value
            bid.notes = notes or ""
            bid.status = DriverBid.Status.ACTIVE
            bid.save(update_fields=["amount", "notes", "status", "updated_at"])
            created = False

    logger.info(
        "drivers: bid placed",
        extra={
            "bid_id": bid.pk,
            "ride_request_id": ride_request.pk,
            "driver_id": driver.pk,
            "amount": str(value),
            "bid_created": created,
        },
    )
    return bid


def withdraw_bid(bid_id, driver) -> None:
    """Delete an active bid owned by ``driver``."""
    with transaction.atomic():
        bid = _get_bid(bid_id, for_update=True)
        if bid.driver_id != driver.pk:
            raise BidNotFound(f"Bid #{bid_id} not found.")
        if bid.status != DriverBid.Status.ACTIVE:
            raise InvalidState(f"Bid is {bid.status} and cannot be withdrawn.")
        bid.delete()
    logger.info("drivers: bid withdrawn", extra={"bid_id": bid_id, "driver_id": driver.pk})


def list_bids(ride_request_id):
    """Bids for a ride request, lowest amount first, oldest first on ties."""
    return (
        DriverBid.objects.filter(ride_request_id=ride_request_id)
        .select_related("driver")
        .order_by("amount", "created_at", "id")
    )


def accept_bid(bid_id) -> DriverBid:
    """Accept one bid, reject its competitors and assign the ride."""
    with transaction.atomic():
        bid = _get_bid(bid_id)
        ride_request = _lock_ride_request(bid.ride_request_id)
        bid.refresh_from_db()
        if bid.status != DriverBid.Status.ACTIVE:
            raise InvalidState(f"Bid is {bid.status} and cannot be accepted.")
        if ride_request.status != RideRequest.Status.OPEN:
            raise InvalidState(f"Ride request is {ride_request.status}.")

        now = timezone.now()
        DriverBid.objects.filter(pk=bid.pk).update(status=DriverBid.Status.ACCEPTED, updated_at=now)
        rejected = (
            DriverBid.objects.filter(ride_request=ride_request, status=DriverBid.Status.ACTIVE)
            .exclude(pk=bid.pk)
            .update(status=DriverBid.Status.REJECTED, updated_at=now)
        )
        RideRequest.objects.filter(pk=ride_request.pk).update(
            status=RideRequest.Status.ASSIGNED,
            updated_at=now,
        )
        bid.refresh_from_db()

    logger.info(
        "drivers: bid accepted",
        extra={"bid_id": bid.pk, "ride_request_id": ride_request.pk, "rejected": rejected},
    )
    return bid


def reject_bid(bid_id) -> DriverBid:
    bid = _get_bid(bid_id)
    updated = DriverBid.objects.filter(pk=bid.pk, status=DriverBid.Status.ACTIVE).update(
        status=DriverBid.Status.REJECTED,
        updated_at=timezone.now(),
    )
    bid.refresh_from_db()
    if not updated:
        raise InvalidState(f"Bid is {bid.status} and cannot be rejected.")
    logger.info("drivers: bid rejected", extra={"bid_id": bid.pk})
    return bid


def expire_bids_before(cutoff_date) -> int:
    """Expire active bids on rides dated before ``cutoff_date``."""
    return DriverBid.objects.filter(
        status=DriverBid.Status.ACTIVE,
        ride_request__ride_date__lt=cutoff_date,
    ).update(status=DriverBid.Status.EXPIRED, updated_at=timezone.now())
