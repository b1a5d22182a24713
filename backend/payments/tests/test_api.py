from decimal import Decimal

import pytest

from bookings.models import Booking
from payments.ledger import get_miles_balance

pytestmark = pytest.mark.django_db


def test_create_checkout_returns_url(api_client, rider, route, stripe_checkout_calls):
    response = api_client.post(
        "/create-checkout",
        {"routeId": route.pk, "timeSlot": "18:00", "quantity": 2, "userId": rider.pk},
        format="json",
    )

    assert response.status_code == 200
    assert response.data["url"] == "https://checkout.stripe.test/1"
    assert stripe_checkout_calls[0]["metadata"]["quantity"] == "2"


def test_create_checkout_errors_are_400(api_client, rider, route, stripe_checkout_calls):
    response = api_client.post(
        "/create-checkout",
        {"itemId": route.pk, "itemType": "route", "timeSlot": "18:00", "quantity": 0, "userId": rider.pk},
        format="json",
    )

    assert response.status_code == 400
    assert response.data == {"error": "quantity must be at least 1."}


def test_create_checkout_unknown_item_type(api_client, rider, route):
    response = api_client.post(
        "/create-checkout",
        {"itemId": route.pk, "itemType": "boat", "userId": rider.pk},
        format="json",
    )

    assert response.status_code == 400
    assert "itemType" in response.data["error"]


def test_pay_with_miles_endpoint(api_client, rider, deal):
    deal.price = Decimal("2.00")
    deal.save()

    response = api_client.post(
        "/pay-with-miles",
        {"dealId": deal.pk, "quantity": 1, "userId": rider.pk, "milesAmount": 100},
        format="json",
    )

    assert response.status_code == 200
    assert response.data["milesRedeemed"] == 100
    assert get_miles_balance(rider) == 0


def test_claim_free_deal_endpoint(api_client, rider, free_deal):
    response = api_client.post(
        "/claim-free-deal",
        {"dealId": free_deal.pk, "userId": rider.pk},
        format="json",
    )

    assert response.status_code == 200
    assert response.data["success"] is True


def test_process_refund_requires_admin(api_client, rider, booking_factory):
    booking = booking_factory()
    api_client.force_authenticate(user=rider)

    response = api_client.post("/process-refund", {"bookingId": booking.pk}, format="json")

    assert response.status_code == 403


def test_process_refund_single_booking(api_client, admin_user, booking_factory, stripe_refund_calls):
    booking = booking_factory(stripe_payment_intent_id="pi_1")
    api_client.force_authenticate(user=admin_user)

    response = api_client.post("/process-refund", {"bookingId": booking.pk}, format="json")

    assert response.status_code == 200
    assert response.data["success"] is True
    booking.refresh_from_db()
    assert booking.status == Booking.Status.REFUNDED


def test_process_refund_whole_route(api_client, admin_user, route, booking_factory, stripe_refund_calls):
    booking_factory(stripe_payment_intent_id="pi_1")
    booking_factory(stripe_payment_intent_id="pi_2", time_slot="20:00")
    api_client.force_authenticate(user=admin_user)

    response = api_client.post("/process-refund", {"routeId": route.pk, "refundAll": True}, format="json")

    assert response.status_code == 200
    assert response.data["success"] is True
    assert response.data["message"] == f"Refunded 2 booking(s) for route #{route.pk}."
    assert len(stripe_refund_calls) == 2


def test_process_refund_twice_returns_error(api_client, admin_user, booking_factory, stripe_refund_calls):
    booking = booking_factory(stripe_payment_intent_id="pi_1")
    api_client.force_authenticate(user=admin_user)
    api_client.post("/process-refund", {"bookingId": booking.pk}, format="json")

    response = api_client.post("/process-refund", {"bookingId": booking.pk}, format="json")

    assert response.status_code == 400
    assert "cannot be refunded" in response.data["error"]


def test_wallet_endpoint(api_client, rider):
    api_client.force_authenticate(user=rider)

    response = api_client.get(f"/api/wallet/{rider.pk}/")

    assert response.status_code == 200
    assert response.data["points"] == 100
    assert response.data["history"][0]["kind"] == "signup_bonus"


def test_wallet_of_another_rider_is_forbidden(api_client, rider, other_rider):
    api_client.force_authenticate(user=other_rider)

    response = api_client.get(f"/api/wallet/{rider.pk}/")

    assert response.status_code == 403
    assert "points" not in response.data


def test_wallet_requires_login(api_client, rider):
    assert api_client.get(f"/api/wallet/{rider.pk}/").status_code == 401


def test_staff_can_read_any_wallet(api_client, admin_user, rider):
    api_client.force_authenticate(user=admin_user)

    response = api_client.get(f"/api/wallet/{rider.pk}/")

    assert response.status_code == 200
    assert response.data["userId"] == rider.pk


def test_confirm_flagged_booking_endpoint(api_client, admin_user, booking_factory):
    booking = booking_factory(status=Booking.Status.PENDING, needs_reconciliation=True)
    api_client.force_authenticate(user=admin_user)

    response = api_client.post(f"/api/admin/bookings/{booking.pk}/confirm/")

    assert response.status_code == 200
    assert response.data["status"] == "confirmed"
