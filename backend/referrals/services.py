"""Referral code issuance, lookup and checkout discount attribution."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import F

from core.errors import InvalidRequest

from .models import ReferralCode

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class ReferralDiscount:
    code: str
    amount: Decimal
    discount_type: str


def _generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_or_create_referral_code(user) -> ReferralCode:
    """Return the user's referral code, issuing one on first use."""
    existing = ReferralCode.objects.filter(user=user).first()
    if existing is not None:
        return existing
    for _ in range(5):
        try:
            with transaction.atomic():
                return ReferralCode.objects.create(user=user, code=_generate_code())
        except IntegrityError:
            existing = ReferralCode.objects.filter(user=user).first()
            if existing is not None:
                return existing
    raise RuntimeError("Could not allocate a unique referral code.")


def lookup_referral_owner(code: str | None):
    """Return the user owning ``code`` or None."""
    normalized = normalize_code(code)
    if not normalized:
        return None
    referral = ReferralCode.objects.select_related("user").filter(code=normalized).first()
    return referral.user if referral else None


def compute_referral_discount(
    *,
    code: str | None,
    user_id: int,
    subtotal: Decimal,
    discount_type: str,
    discount_value: Decimal,
) -> ReferralDiscount | None:
    """
    Resolve the discount granted by a referral code at checkout.

    Percent discounts apply to the subtotal; fixed discounts are dollars.
    The result never exceeds the subtotal.
    """
    normalized = normalize_code(code)
    if not normalized:
        return None
    owner = lookup_referral_owner(normalized)
    if owner is None:
        raise InvalidRequest("Referral code is not valid.")
    if owner.pk == user_id:
        raise InvalidRequest("You cannot use your own referral code.")

    if discount_type == "percent":
        amount = subtotal * discount_value / Decimal("100")
    else:
        amount = discount_value
    amount = min(max(amount, Decimal("0")), subtotal).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return ReferralDiscount(code=normalized, amount=amount, discount_type=discount_type)


def record_referral_use(code: str | None) -> bool:
    """Increment the use counter for ``code``; returns False for unknown codes."""
    normalized = normalize_code(code)
    if not normalized:
        return False
    updated = ReferralCode.objects.filter(code=normalized).update(uses=F("uses") + 1)
    if not updated:
        logger.warning("referral code %s not found while recording use", normalized)
    return bool(updated)
