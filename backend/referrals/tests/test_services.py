from decimal import Decimal

import pytest

from core.errors import InvalidRequest
from referrals.models import ReferralCode
from referrals.services import (
    CODE_ALPHABET,
    CODE_LENGTH,
    compute_referral_discount,
    get_or_create_referral_code,
    lookup_referral_owner,
    record_referral_use,
)

pytestmark = pytest.mark.django_db


def _discount(code, user, subtotal, discount_type="percent", value="10"):
    return compute_referral_discount(
        code=code,
        user_id=user.pk,
        subtotal=Decimal(subtotal),
        discount_type=discount_type,
        discount_value=Decimal(value),
    )


def test_code_is_stable_per_user(rider):
    first = get_or_create_referral_code(rider)
    second = get_or_create_referral_code(rider)

    assert first.pk == second.pk
    assert len(first.code) == CODE_LENGTH
    assert set(first.code) <= set(CODE_ALPHABET)


def test_lookup_ignores_case_and_whitespace(rider):
    code = get_or_create_referral_code(rider).code

    assert lookup_referral_owner(f"  {code.lower()} ") == rider
    assert lookup_referral_owner("") is None
    assert lookup_referral_owner(None) is None


def test_percent_discount_is_rounded(rider, other_rider):
    code = get_or_create_referral_code(rider).code

    assert _discount(code, other_rider, "33.33").amount == Decimal("3.33")


def test_fixed_discount_capped_at_subtotal(rider, other_rider):
    code = get_or_create_referral_code(rider).code

    discount = _discount(code, other_rider, "5.00", discount_type="fixed", value="12.00")

    assert discount.amount == Decimal("5.00")
    assert discount.discount_type == "fixed"
    assert discount.code == code


def test_unknown_code_rejected(rider):
    with pytest.raises(InvalidRequest):
        _discount("NOPE2345", rider, "10")


def test_own_code_rejected(rider):
    code = get_or_create_referral_code(rider).code

    with pytest.raises(InvalidRequest):
        _discount(code, rider, "10")


def test_blank_code_means_no_discount(rider):
    assert _discount("  ", rider, "10") is None


def test_record_use_counts_known_codes(rider):
    code = get_or_create_referral_code(rider).code

    assert record_referral_use(code) is True
    assert record_referral_use("MISSING2") is False
    assert record_referral_use("") is False
    assert ReferralCode.objects.get(code=code).uses == 1
