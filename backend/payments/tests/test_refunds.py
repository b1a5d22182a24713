from decimal import Decimal

import pytest
import stripe

from bookings.models import Booking
from catalog.models import Route
from core.errors import BookingNotFound, CapacityExceeded, GatewayError, InvalidState
from payments import stripe_api
from payments.ledger import get_miles_balance, redeem_miles
from payments.models import CreditTransaction, MilesTransaction
from payments_refunds import confirm_flagged_booking, refund_booking, refund_route_bookings

pytestmark = pytest.mark.django_db


@pytest.fixture
def paid_booking(booking_factory, route, rider):
    Route.objects.filter(pk=route.pk).update(tickets_sold=2)
    booking = booking_factory(
        quantity=2,
        total_price=Decimal("48.00"),
        stripe_session_id="cs_paid",
        stripe_payment_intent_id="pi_paid",
        miles_redeemed=100,
    )
    redeem_miles(rider, 100, reference_id="pi_paid")
    return booking


def test_refund_booking_reverses_everything(paid_booking, route, rider, stripe_refund_calls):
    outcome = refund_booking(paid_booking.pk)

    assert outcome.refunded_amount == "48.00"
    assert outcome.miles_returned == 100
    assert outcome.stripe_refund_id == "re_test_1"
    assert stripe_refund_calls[0]["payment_intent"] == "pi_paid"
    assert stripe_refund_calls[0]["idempotency_key"].startswith(f"refund:booking:{paid_booking.pk}")

    paid_booking.refresh_from_db()
    route.refresh_from_db()
    assert paid_booking.status == Booking.Status.REFUNDED
    assert paid_booking.refunded_at is not None
    assert route.tickets_sold == 0
    assert get_miles_balance(rider) == 100
    credit = CreditTransaction.objects.get(kind=CreditTransaction.Kind.REFUND)
    assert credit.amount == Decimal("48.00")
    assert credit.reference_id == f"booking:{paid_booking.pk}"


def test_second_refund_is_rejected_without_side_effects(paid_booking, rider, stripe_refund_calls):
    refund_booking(paid_booking.pk)

    with pytest.raises(InvalidState):
        refund_booking(paid_booking.pk)

    assert len(stripe_refund_calls) == 1
    assert CreditTransaction.objects.filter(kind=CreditTransaction.Kind.REFUND).count() == 1
    assert MilesTransaction.objects.filter(user=rider, kind=MilesTransaction.Kind.REFUND).count() == 1


def test_refund_missing_booking():
    with pytest.raises(BookingNotFound):
        refund_booking(424242)


def test_refund_miles_only_booking_skips_stripe(booking_factory, rider, stripe_refund_calls):
    booking = booking_factory(total_price=Decimal("0.00"), payment_method="miles", miles_redeemed=50)
    redeem_miles(rider, 50, reference_id=f"booking:{booking.pk}")

    refund_booking(booking.pk)

    assert stripe_refund_calls == []
    assert get_miles_balance(rider) == 100
    assert not CreditTransaction.objects.filter(kind=CreditTransaction.Kind.REFUND).exists()


def test_already_refunded_at_stripe_counts_as_done(paid_booking, monkeypatch):
    def fake_create(**kwargs):
        raise stripe.InvalidRequestError("Charge already refunded", "payment_intent", code="charge_already_refunded")

    monkeypatch.setattr(stripe_api.stripe, "Refund", type("MockRefund", (), {"create": staticmethod(fake_create)}))

    outcome = refund_booking(paid_booking.pk)

    assert outcome.stripe_refund_id is None
    paid_booking.refresh_from_db()
    assert paid_booking.status == Booking.Status.REFUNDED


def test_gateway_failure_leaves_booking_untouched(paid_booking, monkeypatch):
    def fake_create(**kwargs):
        raise stripe.APIConnectionError("timeout")

    monkeypatch.setattr(stripe_api.stripe, "Refund", type("MockRefund", (), {"create": staticmethod(fake_create)}))

    with pytest.raises(GatewayError) as excinfo:
        refund_booking(paid_booking.pk)

    assert excinfo.value.retryable is True
    paid_booking.refresh_from_db()
    assert paid_booking.status == Booking.Status.CONFIRMED


def test_refund_flagged_pending_booking(booking_factory, route, stripe_refund_calls):
    booking = booking_factory(
        status=Booking.Status.PENDING,
        needs_reconciliation=True,
        stripe_payment_intent_id="pi_flagged",
    )

    refund_booking(booking.pk)

    booking.refresh_from_db()
    route.refresh_from_db()
    assert booking.status == Booking.Status.REFUNDED
    assert booking.needs_reconciliation is False
    assert route.tickets_sold == 0


def test_bulk_refund_collects_failures(booking_factory, route, other_rider, monkeypatch):
    good = booking_factory(stripe_payment_intent_id="pi_good")
    bad = booking_factory(user=other_rider, stripe_payment_intent_id="pi_bad")
    booking_factory(status=Booking.Status.CANCELLED)

    def fake_create(**kwargs):
        if kwargs["payment_intent"] == "pi_bad":
            raise stripe.CardError("declined", "payment_intent", code="card_declined")
        return {"id": "re_ok"}

    monkeypatch.setattr(stripe_api.stripe, "Refund", type("MockRefund", (), {"create": staticmethod(fake_create)}))

    report = refund_route_bookings(route.pk)

    assert [outcome.booking_id for outcome in report.refunded] == [good.pk]
    assert list(report.failed) == [bad.pk]
    assert report.success is False
    good.refresh_from_db()
    bad.refresh_from_db()
    assert good.status == Booking.Status.REFUNDED
    assert bad.status == Booking.Status.CONFIRMED


def test_bulk_refund_of_five_with_third_failing(booking_factory, route, monkeypatch):
    bookings = [booking_factory(stripe_payment_intent_id=f"pi_{n}") for n in range(1, 6)]
    third = bookings[2]

    def fake_create(**kwargs):
        if kwargs["payment_intent"] == "pi_3":
            raise stripe.APIConnectionError("network down")
        return {"id": f"re_{kwargs['payment_intent']}"}

    monkeypatch.setattr(stripe_api.stripe, "Refund", type("MockRefund", (), {"create": staticmethod(fake_create)}))

    report = refund_route_bookings(route.pk)

    assert list(report.failed) == [third.pk]
    assert report.failed[third.pk]
    refunded_ids = {outcome.booking_id for outcome in report.refunded}
    assert refunded_ids == {b.pk for b in bookings} - {third.pk}
    for booking in bookings:
        booking.refresh_from_db()
    assert [b.status for b in bookings] == [
        Booking.Status.REFUNDED,
        Booking.Status.REFUNDED,
        Booking.Status.CONFIRMED,
        Booking.Status.REFUNDED,
        Booking.Status.REFUNDED,
    ]
    credited = set(
        CreditTransaction.objects.filter(kind=CreditTransaction.Kind.REFUND).values_list("reference_id", flat=True)
    )
    assert credited == {f"booking:{pk}" for pk in refunded_ids}


def test_confirm_flagged_booking_when_seats_free_up(booking_factory, route):
    booking = booking_factory(quantity=2, status=Booking.Status.PENDING, needs_reconciliation=True)

    confirmed = confirm_flagged_booking(booking.pk)

    assert confirmed.status == Booking.Status.CONFIRMED
    assert confirmed.needs_reconciliation is False
    route.refresh_from_db()
    assert route.tickets_sold == 2


def test_confirm_flagged_booking_still_full(booking_factory, route, other_rider):
    booking_factory(user=other_rider, quantity=10)
    booking = booking_factory(status=Booking.Status.PENDING, needs_reconciliation=True)

    with pytest.raises(CapacityExceeded):
        confirm_flagged_booking(booking.pk)

    booking.refresh_from_db()
    assert booking.status == Booking.Status.PENDING


def test_confirm_requires_flagged_booking(booking_factory):
    booking = booking_factory()

    with pytest.raises(InvalidState):
        confirm_flagged_booking(booking.pk)
