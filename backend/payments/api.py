"""HTTP endpoints for checkout, Stripe webhooks, wallet payments and refunds."""

from __future__ import annotations

import logging

import stripe
from django.contrib.auth import get_user_model
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from catalog.services import parse_item_kind
from core.errors import BookingCoreError, InvalidRequest
from payments_refunds import confirm_flagged_booking, refund_booking, refund_route_bookings

from .checkout import SettlementMetadata, build_checkout_session
from .ledger import get_miles_balance
from .models import MilesTransaction
from .settlement import (
    claim_free_deal as claim_free_deal_service,
    mark_checkout_session_failed,
    purchase_with_miles,
    settle_checkout_session,
)
from .stripe_api import construct_webhook_event

logger = logging.getLogger(__name__)
User = get_user_model()
WALLET_HISTORY_LIMIT = 50


def _error(message: str) -> Response:
    return Response({"error": message}, status=status.HTTP_400_BAD_REQUEST)


def _parse_int(value, field_name: str, *, default=None, minimum: int | None = None) -> int:
    if value in (None, ""):
        if default is None:
            raise InvalidRequest(f"{field_name} is required.")
        return default
    if isinstance(value, bool):
        raise InvalidRequest(f"{field_name} must be an integer.")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field_name} must be an integer.")
    if minimum is not None and parsed < minimum:
        raise InvalidRequest(f"{field_name} must be at least {minimum}.")
    return parsed


def _item_from_body(data) -> tuple:
    kind = parse_item_kind(data.get("itemType") or ("deal" if data.get("dealId") else None))
    raw_id = data.get("itemId") or data.get("routeId") or data.get("dealId")
    return kind, _parse_int(raw_id, "itemId")


@api_view(["POST"])
@permission_classes([AllowAny])
def create_checkout(request):
    """Open a Stripe Checkout session for a route ticket or deal."""
    data = request.data
    try:
        kind, item_id = _item_from_body(data)
        result = build_checkout_session(
            user_id=_parse_int(data.get("userId"), "userId"),
            kind=kind,
            item_id=item_id,
            quantity=_parse_int(data.get("quantity"), "quantity", default=1, minimum=1),
            time_slot=(data.get("timeSlot") or "").strip(),
            miles_amount=_parse_int(data.get("milesAmount"), "milesAmount", default=0, minimum=0),
            referral_code=data.get("referralCode"),
        )
    except BookingCoreError as exc:
        return _error(str(exc))
    return Response({"url": result.url, "sessionId": result.session_id})


@csrf_exempt
@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def stripe_webhook(request):
    """Handle Stripe Checkout webhooks; settlement failures return 400 so Stripe redelivers."""
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    try:
        event = construct_webhook_event(payload, sig_header)
    except ValueError:
        return _error("Invalid payload.")
    except stripe.SignatureVerificationError:
        return _error("Invalid signature.")
    except BookingCoreError as exc:
        logger.error("stripe_webhook: %s", exc)
        return _error(str(exc))

    event_type = event.get("type")
    data_object = event.get("data", {}).get("object", {}) or {}
    session_id = data_object.get("id", "")

    if event_type == "checkout.session.expired":
        if session_id and mark_checkout_session_failed(session_id):
            logger.info("stripe_webhook: checkout session expired", extra={"session_id": session_id})
        return Response({"received": True})

    if event_type not in {"checkout.session.completed", "checkout.session.async_payment_succeeded"}:
        return Response({"received": True})

    payment_status = data_object.get("payment_status")
    if payment_status and payment_status != "paid":
        logger.info(
            "stripe_webhook: checkout session not paid yet",
            extra={"session_id": session_id, "payment_status": payment_status},
        )
        return Response({"received": True})

    try:
        metadata = SettlementMetadata.from_stripe_metadata(data_object.get("metadata"))
        result = settle_checkout_session(
            session_id,
            data_object.get("payment_intent") or "",
            metadata,
        )
    except BookingCoreError as exc:
        logger.warning(
            "stripe_webhook: settlement failed",
            extra={"session_id": session_id, "error": str(exc)},
        )
        return _error(str(exc))

    if result.flagged:
        logger.warning(
            "stripe_webhook: booking needs reconciliation",
            extra={"session_id": session_id, "purchase_id": result.purchase.pk},
        )
    return Response({"received": True})


@api_view(["POST"])
@permission_classes([AllowAny])
def pay_with_miles(request):
    """Book a route ticket or deal paid entirely with miles."""
    data = request.data
    try:
        kind, item_id = _item_from_body(data)
        result = purchase_with_miles(
            user_id=_parse_int(data.get("userId"), "userId"),
            kind=kind,
            item_id=item_id,
            quantity=_parse_int(data.get("quantity"), "quantity", default=1, minimum=1),
            time_slot=(data.get("timeSlot") or "").strip(),
            miles_amount=_parse_int(data.get("milesAmount"), "milesAmount", minimum=0),
        )
    except BookingCoreError as exc:
        return _error(str(exc))
    purchase = result.purchase
    return Response(
        {
            "success": True,
            "bookingId" if result.booking else "purchaseId": purchase.pk,
            "milesRedeemed": purchase.miles_redeemed,
        }
    )


@api_view(["POST"])
@permission_classes([AllowAny])
def claim_free_deal(request):
    data = request.data
    try:
        result = claim_free_deal_service(
            user_id=_parse_int(data.get("userId"), "userId"),
            deal_id=_parse_int(data.get("dealId") or data.get("itemId"), "dealId"),
            quantity=_parse_int(data.get("quantity"), "quantity", default=1, minimum=1),
        )
    except BookingCoreError as exc:
        return _error(str(exc))
    return Response({"success": True, "purchaseId": result.deal_purchase.pk})


@api_view(["POST"])
@permission_classes([IsAdminUser])
def process_refund(request):
    """Refund one booking, or every refundable booking of a route with ``refundAll``."""
    data = request.data
    try:
        if data.get("refundAll"):
            report = refund_route_bookings(_parse_int(data.get("routeId"), "routeId"))
            payload = {"success": report.success, "message": report.summary()}
            if report.failed:
                payload["errors"] = {str(key): value for key, value in report.failed.items()}
            return Response(payload)
        outcome = refund_booking(_parse_int(data.get("bookingId"), "bookingId"))
    except BookingCoreError as exc:
        return _error(str(exc))
    return Response(
        {
            "success": True,
            "message": f"Booking #{outcome.booking_id} refunded.",
            "refundedAmount": outcome.refunded_amount,
            "milesReturned": outcome.miles_returned,
        }
    )


@api_view(["POST"])
@permission_classes([IsAdminUser])
def confirm_booking(request, booking_id: int):
    """Confirm a paid booking that was flagged because its slot sold out."""
    try:
        booking = confirm_flagged_booking(booking_id)
    except BookingCoreError as exc:
        return _error(str(exc))
    return Response({"success": True, "bookingId": booking.pk, "status": booking.status})


def _history_row(entry: MilesTransaction) -> dict:
    return {
        "id": entry.id,
        "points": entry.points,
        "kind": entry.kind,
        "description": entry.description,
        "createdAt": entry.created_at.isoformat(),
    }


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def wallet(request, user_id: int):
    """Return a user's miles balance and recent ledger entries; owners and staff only."""
    if request.user.pk != user_id and not request.user.is_staff:
        return Response(
            {"error": "You can only view your own wallet."},
            status=status.HTTP_403_FORBIDDEN,
        )
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return _error("User not found.")
    entries = MilesTransaction.objects.filter(user=user).order_by("-created_at", "-id")[
        :WALLET_HISTORY_LIMIT
    ]
    return Response(
        {
            "userId": user.pk,
            "points": get_miles_balance(user),
            "history": [_history_row(entry) for entry in entries],
        }
    )
