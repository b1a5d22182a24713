import pytest

from payments import ledger
from payments.models import MilesTransaction, WalletPoints

pytestmark = pytest.mark.django_db


def test_signup_bonus_granted_once(rider):
    assert ledger.get_miles_balance(rider) == 100
    assert ledger.grant_signup_bonus(rider, 100) is False
    assert MilesTransaction.objects.filter(user=rider, kind=MilesTransaction.Kind.SIGNUP_BONUS).count() == 1


def test_redeem_is_idempotent_per_reference(rider):
    assert ledger.redeem_miles(rider, 40, reference_id="pi_123") is True
    assert ledger.redeem_miles(rider, 40, reference_id="pi_123") is False

    assert ledger.has_miles_been_redeemed(rider, "pi_123")
    assert ledger.get_miles_balance(rider) == 60


def test_same_reference_different_kind_is_separate_entry(rider):
    ledger.redeem_miles(rider, 30, reference_id="booking:1")
    ledger.refund_miles(rider, 30, reference_id="booking:1")

    assert ledger.get_miles_balance(rider) == 100
    assert MilesTransaction.objects.filter(user=rider, reference_id="booking:1").count() == 2


def test_referral_reward_keyed_by_referee(rider, other_rider):
    assert ledger.grant_referral_reward(rider, other_rider, 300) is True
    assert ledger.grant_referral_reward(rider, other_rider, 300) is False
    assert ledger.get_miles_balance(rider) == 400


def test_cached_balance_matches_ledger(rider):
    ledger.redeem_miles(rider, 25, reference_id="a")
    ledger.adjust_miles(rider, 7, description="goodwill")
    ledger.adjust_miles(rider, -2, description="correction")

    assert ledger.get_miles_balance(rider) == ledger.compute_miles_balance(rider) == 80


def test_recompute_repairs_drift(rider):
    WalletPoints.objects.filter(user=rider).update(points=999)

    previous, current = ledger.recompute_wallet_balance(rider)

    assert (previous, current) == (999, 100)
    assert ledger.get_miles_balance(rider) == 100


def test_credit_refund_recorded_once(booking_factory):
    booking = booking_factory()

    first = ledger.credit_refund(booking=booking, stripe_id="re_1")
    second = ledger.credit_refund(booking=booking, stripe_id="re_2")

    assert first.created is True
    assert second.created is False
    assert second.entry.pk == first.entry.pk
    assert str(first.entry.amount) == "25.00"
