"""Refund ticket bookings via Stripe and reverse their ledger effects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from django.db import transaction
from django.utils import timezone

from bookings import capacity
from bookings.domain import (
    assert_awaiting_reconciliation,
    assert_refundable,
    refundable_bookings_for_route,
)
from bookings.models import Booking
from core.errors import BookingCoreError, BookingNotFound, InvalidState
from notifications import tasks as notification_tasks
from payments.ledger import credit_refund, refund_miles
from payments.settlement import reward_referrer
from payments.stripe_api import create_refund

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundOutcome:
    booking_id: int
    refunded_amount: str
    miles_returned: int
    stripe_refund_id: Optional[str] = None


@dataclass
class BulkRefundReport:
    route_id: int
    refunded: list[RefundOutcome] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        message = f"Refunded {len(self.refunded)} booking(s) for route #{self.route_id}."
        if self.failed:
            message += f" {len(self.failed)} failed."
        return message


def _lock_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_for_update(of=("self",)).select_related("user").get(pk=int(booking_id))
    except (Booking.DoesNotExist, TypeError, ValueError):
        raise BookingNotFound(f"Booking #{booking_id} not found.")


def _queue_refund_email(booking_id: int) -> None:
    try:
        notification_tasks.send_refund_issued_email.delay(booking_id)
    except Exception:
        logger.info(
            "refunds: could not queue refund email for booking %s",
            booking_id,
            exc_info=True,
        )


def refund_booking(booking_id) -> RefundOutcome:
    """
    Refund one booking in full.

    The Stripe call is idempotent per booking, so a failed attempt can be
    retried. Once refunded, further calls raise ``InvalidState``.
    """
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        assert_refundable(booking)
        held_seats = booking.holds_seats()

        refund_id: str | None = None
        intent_id = (booking.stripe_payment_intent_id or "").strip()
        if intent_id and booking.total_price > 0:
            refund_id = create_refund(
                payment_intent_id=intent_id,
                idempotency_key=f"refund:booking:{booking.pk}",
                metadata={"booking_id": str(booking.pk)},
            )

        if held_seats:
            moved = capacity.release(booking, new_status=Booking.Status.REFUNDED)
        else:
            moved = Booking.objects.filter(
                pk=booking.pk,
                status=Booking.Status.PENDING,
                needs_reconciliation=True,
            ).update(status=Booking.Status.REFUNDED)
        if not moved:
            raise InvalidState(f"Booking #{booking.pk} changed state during refund.")

        Booking.objects.filter(pk=booking.pk).update(
            refunded_at=timezone.now(),
            needs_reconciliation=False,
            updated_at=timezone.now(),
        )
        booking.refresh_from_db()

        if booking.total_price > 0:
            credit_refund(booking=booking, stripe_id=refund_id or intent_id or None)
        refund_miles(
            booking.user,
            booking.miles_redeemed,
            reference_id=f"booking:{booking.pk}",
            description=f"Miles returned for booking #{booking.pk}",
        )
        transaction.on_commit(lambda: _queue_refund_email(booking.pk))

    logger.info(
        "refunds: booking refunded",
        extra={
            "booking_id": booking.pk,
            "amount": str(booking.total_price),
            "miles": booking.miles_redeemed,
            "stripe_refund_id": refund_id,
        },
    )
    return RefundOutcome(
        booking_id=booking.pk,
        refunded_amount=str(booking.total_price),
        miles_returned=booking.miles_redeemed,
        stripe_refund_id=refund_id,
    )


def refund_route_bookings(route_id) -> BulkRefundReport:
    """Refund every refundable booking of a route, continuing past failures."""
    report = BulkRefundReport(route_id=int(route_id))
    booking_ids = list(refundable_bookings_for_route(report.route_id).values_list("pk", flat=True))
    for booking_id in booking_ids:
        try:
            report.refunded.append(refund_booking(booking_id))
        except BookingCoreError as exc:
            logger.warning(
                "refunds: bulk refund failed for booking %s",
                booking_id,
                extra={"route_id": report.route_id, "error": str(exc)},
            )
            report.failed[booking_id] = str(exc)
    logger.info(
        "refunds: route refund finished",
        extra={
            "route_id": report.route_id,
            "refunded": len(report.refunded),
            "failed": len(report.failed),
        },
    )
    return report


def confirm_flagged_booking(booking_id) -> Booking:
    """Confirm a paid booking that settled after its slot sold out, if seats have opened up."""
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        assert_awaiting_reconciliation(booking)
        capacity.reserve(booking.route_id, booking.time_slot, booking.quantity)
        Booking.objects.filter(pk=booking.pk, status=Booking.Status.PENDING).update(
            status=Booking.Status.CONFIRMED,
            needs_reconciliation=False,
            reconciliation_reason="",
            updated_at=timezone.now(),
        )
        booking.refresh_from_db()
        reward_referrer(booking.user)
    logger.info("refunds: flagged booking confirmed", extra={"booking_id": booking.pk})
    return booking
