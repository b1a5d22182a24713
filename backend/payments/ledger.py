"""Append-only miles and credit ledgers.

Every entry that carries a ``reference_id`` is applied at most once per
(user, reference_id, kind); replays return the existing row. The cached
``WalletPoints`` balance moves in the same transaction as the entry that
changes it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Sum, Value
from django.db.models.functions import Coalesce

from .models import CreditTransaction, MilesTransaction, WalletPoints

logger = logging.getLogger(__name__)

User = get_user_model()
TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class LedgerWrite:
    entry: object
    created: bool


def _ensure_wallet(user_id: int) -> None:
    if WalletPoints.objects.filter(user_id=user_id).exists():
        return
    try:
        with transaction.atomic():
            WalletPoints.objects.create(user_id=user_id, points=0)
    except IntegrityError:
        pass


def append_miles_entry(
    *,
    user: User,
    points: int,
    kind: str,
    reference_id: Optional[str] = None,
    description: str = "",
) -> LedgerWrite:
    """
    Append a miles entry and move the cached balance by ``points``.

    Returns ``created=False`` with the stored row when an entry with the same
    (user, reference_id, kind) already exists.
    """
    if reference_id is not None:
        existing = MilesTransaction.objects.filter(
            user=user, reference_id=reference_id, kind=kind
        ).first()
        if existing is not None:
            return LedgerWrite(entry=existing, created=False)

    try:
        with transaction.atomic():
            entry = MilesTransaction.objects.create(
                user=user,
                points=points,
                kind=kind,
                reference_id=reference_id,
                description=description,
            )
            _ensure_wallet(user.pk)
            WalletPoints.objects.filter(user_id=user.pk).update(points=F("points") + points)
    except IntegrityError:
        existing = MilesTransaction.objects.filter(
            user=user, reference_id=reference_id, kind=kind
        ).first()
        if existing is None:
            raise
        return LedgerWrite(entry=existing, created=False)

    logger.info(
        "miles ledger entry",
        extra={"user_id": user.pk, "kind": kind, "points": points, "reference_id": reference_id},
    )
    return LedgerWrite(entry=entry, created=True)


def has_miles_been_redeemed(user: User, reference_id: str) -> bool:
    return MilesTransaction.objects.filter(
        user=user,
        reference_id=reference_id,
        kind=MilesTransaction.Kind.REDEEM,
    ).exists()


def redeem_miles(user: User, miles: int, *, reference_id: str, description: str = "") -> bool:
    """Debit ``miles`` once per reference. Returns False if already applied."""
    if miles <= 0:
        return False
    write = append_miles_entry(
        user=user,
        points=-int(miles),
        kind=MilesTransaction.Kind.REDEEM,
        reference_id=reference_id,
        description=description or f"Redeemed {miles} miles",
    )
    return write.created


def refund_miles(user: User, miles: int, *, reference_id: str, description: str = "") -> bool:
    if miles <= 0:
        return False
    write = append_miles_entry(
        user=user,
        points=int(miles),
        kind=MilesTransaction.Kind.REFUND,
        reference_id=reference_id,
        description=description or f"Returned {miles} miles",
    )
    return write.created


def grant_signup_bonus(user: User, miles: int) -> bool:
    write = append_miles_entry(
        user=user,
        points=int(miles),
        kind=MilesTransaction.Kind.SIGNUP_BONUS,
        reference_id=f"signup:{user.pk}",
        description="Welcome bonus",
    )
    return write.created


def grant_referral_reward(referrer: User, referee: User, miles: int) -> bool:
    """Reward ``referrer`` once for ``referee``'s first purchase."""
    if miles <= 0:
        return False
    write = append_miles_entry(
        user=referrer,
        points=int(miles),
        kind=MilesTransaction.Kind.REFERRAL_REWARD,
        reference_id=f"referee:{referee.pk}",
        description=f"Referral reward for user #{referee.pk}",
    )
    return write.created


def adjust_miles(user: User, points: int, *, description: str, reference_id: Optional[str] = None):
    """Manual correction by an admin; may be negative."""
    return append_miles_entry(
        user=user,
        points=int(points),
        kind=MilesTransaction.Kind.ADJUSTMENT,
        reference_id=reference_id,
        description=description,
    ).entry


def get_miles_balance(user: User) -> int:
    """Cached balance; zero for users without a wallet row."""
    return WalletPoints.objects.filter(user=user).values_list("points", flat=True).first() or 0


def compute_miles_balance(user: User) -> int:
    """Authoritative balance from the ledger."""
    return MilesTransaction.objects.filter(user=user).aggregate(
        total=Coalesce(Sum("points"), Value(0))
    )["total"]


def recompute_wallet_balance(user: User) -> tuple[int, int]:
    """
    Rewrite the cached balance from the ledger.

    Returns ``(previous, current)``.
    """
    with transaction.atomic():
        _ensure_wallet(user.pk)
        wallet = WalletPoints.objects.select_for_update().get(user=user)
        previous = wallet.points
        current = compute_miles_balance(user)
        if previous != current:
            wallet.points = current
            wallet.save(update_fields=["points", "updated_at"])
            logger.warning(
                "wallet balance drift repaired",
                extra={"user_id": user.pk, "previous": previous, "current": current},
            )
    return previous, current


def log_credit(
    *,
    user: User,
    amount: Decimal,
    kind: str,
    reference_id: Optional[str] = None,
    booking=None,
    stripe_id: Optional[str] = None,
    description: str = "",
) -> LedgerWrite:
    """Create a CreditTransaction row, at most once per (user, reference_id, kind)."""
    amount = Decimal(amount).quantize(TWO_PLACES)
    if reference_id is not None:
        existing = CreditTransaction.objects.filter(
            user=user, reference_id=reference_id, kind=kind
        ).first()
        if existing is not None:
            return LedgerWrite(entry=existing, created=False)
    try:
        with transaction.atomic():
            entry = CreditTransaction.objects.create(
                user=user,
                booking=booking,
                amount=amount,
                kind=kind,
                reference_id=reference_id,
                stripe_id=stripe_id,
                description=description,
            )
    except IntegrityError:
        existing = CreditTransaction.objects.filter(
            user=user, reference_id=reference_id, kind=kind
        ).first()
        if existing is None:
            raise
        return LedgerWrite(entry=existing, created=False)
    return LedgerWrite(entry=entry, created=True)


def credit_refund(*, booking, stripe_id: Optional[str] = None) -> LedgerWrite:
    """Record the refund of a booking's total price."""
    return log_credit(
        user=booking.user,
        amount=booking.total_price,
        kind=CreditTransaction.Kind.REFUND,
        reference_id=f"booking:{booking.pk}",
        booking=booking,
        stripe_id=stripe_id,
        description=f"Refund for booking #{booking.pk}",
    )
