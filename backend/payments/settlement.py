"""Turn a paid Stripe Checkout session (or a wallet-only purchase) into a booking.

Every flow here runs in a single ``transaction.atomic()`` block: the booking
row, counter updates, miles debit and referral attribution commit together
or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from bookings import capacity
from bookings.models import Booking, DealPurchase, PaymentMethod
from catalog.models import Deal, ItemKind
from catalog.services import get_active_item, get_item
from core.errors import CapacityExceeded, DuplicateEvent, InvalidRequest
from core.settings_resolver import get_point_value, get_referral_reward
from notifications import tasks as notification_tasks
from referrals.services import record_referral_use

from .checkout import SettlementMetadata, get_user, miles_discount_for
from .ledger import (
    get_miles_balance,
    grant_referral_reward,
    has_miles_been_redeemed,
    log_credit,
    redeem_miles,
)
from .models import CheckoutSession, CreditTransaction, WalletPoints

logger = logging.getLogger(__name__)

User = get_user_model()
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class SettlementResult:
    duplicate: bool = False
    booking: Optional[Booking] = None
    deal_purchase: Optional[DealPurchase] = None
    flagged: bool = False

    @property
    def purchase(self):
        return self.booking or self.deal_purchase


def _queue_confirmation(purchase_id: int, kind: str) -> None:
    try:
        notification_tasks.send_booking_confirmation_email.delay(purchase_id, kind)
    except Exception:
        logger.info(
            "settlement: could not queue confirmation email for %s %s",
            kind,
            purchase_id,
            exc_info=True,
        )


def reward_referrer(user) -> None:
    """Reward whoever referred ``user``; keyed by the referee so it happens once."""
    if not user.referred_by_id:
        return
    reward = get_referral_reward()
    if reward <= 0:
        return
    if grant_referral_reward(user.referred_by, user, reward):
        logger.info(
            "settlement: referral reward granted",
            extra={"referrer_id": user.referred_by_id, "referee_id": user.pk, "miles": reward},
        )


def _already_settled(session_id: str, payment_intent_id: str) -> bool:
    if Booking.objects.filter(stripe_session_id=session_id).exists():
        return True
    if DealPurchase.objects.filter(stripe_session_id=session_id).exists():
        return True
    if payment_intent_id:
        return (
            Booking.objects.filter(stripe_payment_intent_id=payment_intent_id).exists()
            or DealPurchase.objects.filter(stripe_payment_intent_id=payment_intent_id).exists()
        )
    return False


def _claim_session(session_id: str, payment_intent_id: str, metadata: SettlementMetadata) -> CheckoutSession:
    """
    Lock the session row and move it to ``settling``.

    Raises DuplicateEvent when the session, or a purchase for the same payment
    intent, was already settled. Must run inside ``transaction.atomic()``.
    """
    is_route = metadata.kind == ItemKind.ROUTE
    session, _ = CheckoutSession.objects.select_for_update().get_or_create(
        stripe_session_id=session_id,
        defaults={
            "user_id": metadata.user_id,
            "kind": metadata.kind.value,
            "route_id": metadata.item_id if is_route else None,
            "deal_id": None if is_route else metadata.item_id,
            "time_slot": metadata.time_slot,
            "quantity": metadata.quantity,
            "total_amount": metadata.total_amount,
            "miles_amount": metadata.miles_amount,
            "miles_discount": metadata.miles_discount,
            "referral_code": metadata.referral_code,
            "referral_discount": metadata.referral_discount,
            "discount_type": metadata.discount_type,
        },
    )
    if session.status == CheckoutSession.Status.SETTLED:
        raise DuplicateEvent(session_id)
    if _already_settled(session_id, payment_intent_id):
        CheckoutSession.objects.filter(pk=session.pk).update(
            status=CheckoutSession.Status.SETTLED,
            is_paid=True,
            consumed_at=session.consumed_at or timezone.now(),
        )
        raise DuplicateEvent(session_id)

    session.status = CheckoutSession.Status.SETTLING
    session.save(update_fields=["status", "updated_at"])
    return session


def _create_route_booking(user, meta: SettlementMetadata, session_id: str, payment_intent_id: str):
    route = get_item(ItemKind.ROUTE, meta.item_id)
    flagged_reason = ""
    if not route.is_active():
        flagged_reason = f"Route is {route.status}."
    else:
        try:
            capacity.reserve(route.pk, meta.time_slot, meta.quantity)
        except CapacityExceeded as exc:
            flagged_reason = f"Paid after slot sold out ({exc.available} seat(s) left)."
        except InvalidRequest as exc:
            flagged_reason = str(exc)

    booking = Booking.objects.create(
        user=user,
        route=route,
        time_slot=meta.time_slot,
        quantity=meta.quantity,
        total_price=meta.total_amount,
        status=Booking.Status.PENDING if flagged_reason else Booking.Status.CONFIRMED,
        payment_method=PaymentMethod.CARD,
        stripe_session_id=session_id,
        stripe_payment_intent_id=payment_intent_id or "",
        miles_redeemed=meta.miles_amount,
        discount_code=meta.referral_code or None,
        discount_amount=meta.referral_discount if meta.referral_code else None,
        discount_type=meta.discount_type or None,
        needs_reconciliation=bool(flagged_reason),
        reconciliation_reason=flagged_reason,
    )
    if flagged_reason:
        logger.warning(
            "settlement: paid booking flagged for reconciliation",
            extra={
                "booking_id": booking.pk,
                "route_id": route.pk,
                "time_slot": meta.time_slot,
                "reason": flagged_reason,
            },
        )
    return booking


def _create_deal_purchase(user, meta: SettlementMetadata, session_id: str, payment_intent_id: str):
    deal = get_item(ItemKind.DEAL, meta.item_id)
    purchase = DealPurchase.objects.create(
        user=user,
        deal=deal,
        quantity=meta.quantity,
        total_price=meta.total_amount,
        status=DealPurchase.Status.CONFIRMED,
        payment_method=PaymentMethod.CARD,
        stripe_session_id=session_id,
        stripe_payment_intent_id=payment_intent_id or "",
        miles_redeemed=meta.miles_amount,
        discount_code=meta.referral_code or None,
        discount_amount=meta.referral_discount if meta.referral_code else None,
        discount_type=meta.discount_type or None,
    )
    Deal.objects.filter(pk=deal.pk).update(purchases=F("purchases") + meta.quantity)
    return purchase


def _flag_for_reconciliation(purchase, reason: str) -> None:
    """Mark a booking or deal purchase for admin review, keeping any earlier reason."""
    combined = " ".join(r for r in (purchase.reconciliation_reason, reason) if r)[:255]
    type(purchase).objects.filter(pk=purchase.pk).update(
        needs_reconciliation=True,
        reconciliation_reason=combined,
    )
    purchase.needs_reconciliation = True
    purchase.reconciliation_reason = combined


def settle_checkout_session(
    session_id: str,
    payment_intent_id: str,
    metadata: SettlementMetadata,
) -> SettlementResult:
    """
    Apply a completed Checkout session exactly once.

    Replays for a session (or payment intent) that already produced a booking
    return ``SettlementResult(duplicate=True)`` without side effects.
    """
    if not session_id:
        raise InvalidRequest("Checkout session id is required.")
    payment_intent_id = payment_intent_id or ""

    with transaction.atomic():
        try:
            session = _claim_session(session_id, payment_intent_id, metadata)
        except DuplicateEvent:
            logger.info(
                "settlement: duplicate delivery ignored",
                extra={"session_id": session_id, "payment_intent_id": payment_intent_id},
            )
            return SettlementResult(duplicate=True)

        user = get_user(metadata.user_id)
        booking = deal_purchase = None
        if metadata.kind == ItemKind.ROUTE:
            booking = _create_route_booking(user, metadata, session_id, payment_intent_id)
        else:
            deal_purchase = _create_deal_purchase(user, metadata, session_id, payment_intent_id)
        purchase = booking or deal_purchase

        log_credit(
            user=user,
            amount=-metadata.total_amount,
            kind=CreditTransaction.Kind.PURCHASE,
            reference_id=f"checkout:{session_id}",
            booking=booking,
            stripe_id=payment_intent_id or None,
            description=f"Card payment for {metadata.kind.value} #{metadata.item_id}",
        )

        if metadata.miles_amount > 0:
            miles_reference = payment_intent_id or session_id
            if has_miles_been_redeemed(user, miles_reference):
                logger.info(
                    "settlement: miles already redeemed for %s",
                    miles_reference,
                    extra={"user_id": user.pk},
                )
            else:
                balance = get_miles_balance(user)
                if balance < metadata.miles_amount:
                    _flag_for_reconciliation(
                        purchase,
                        f"Redeemed {metadata.miles_amount} miles with only {balance} in the wallet.",
                    )
                    logger.warning(
                        "settlement: redeeming more miles than the wallet holds",
                        extra={"user_id": user.pk, "balance": balance, "miles": metadata.miles_amount},
                    )
                redeem_miles(
                    user,
                    metadata.miles_amount,
                    reference_id=miles_reference,
                    description=f"Redeemed on {metadata.kind.value} #{metadata.item_id}",
                )

        if metadata.referral_code:
            record_referral_use(metadata.referral_code)
        if not (booking and booking.awaiting_reconciliation()):
            reward_referrer(user)
        flagged = purchase.needs_reconciliation

        CheckoutSession.objects.filter(pk=session.pk).update(
            status=CheckoutSession.Status.SETTLED,
            is_paid=True,
            consumed_at=timezone.now(),
            stripe_payment_intent_id=payment_intent_id,
        )
        transaction.on_commit(
            lambda: _queue_confirmation(purchase.pk, metadata.kind.value)
        )

    logger.info(
        "settlement: checkout session settled",
        extra={
            "session_id": session_id,
            "kind": metadata.kind.value,
            "purchase_id": purchase.pk,
            "flagged": flagged,
        },
    )
    return SettlementResult(booking=booking, deal_purchase=deal_purchase, flagged=flagged)


def mark_checkout_session_failed(session_id: str) -> bool:
    """Close an open session that Stripe reports as expired."""
    updated = CheckoutSession.objects.filter(
        stripe_session_id=session_id,
        status=CheckoutSession.Status.OPEN,
    ).update(status=CheckoutSession.Status.FAILED)
    return bool(updated)


def _lock_wallet_balance(user) -> int:
    wallet = WalletPoints.objects.select_for_update().filter(user=user).first()
    return wallet.points if wallet else 0


def purchase_with_miles(
    *,
    user_id,
    kind: ItemKind,
    item_id,
    quantity: int,
    miles_amount: int,
    time_slot: str = "",
) -> SettlementResult:
    """Buy a route ticket or deal entirely with miles; no card charge."""
    if quantity < 1:
        raise InvalidRequest("quantity must be at least 1.")
    if miles_amount < 0:
        raise InvalidRequest("milesAmount cannot be negative.")

    with transaction.atomic():
        user = get_user(user_id)
        item = get_active_item(kind, item_id)
        subtotal = (Decimal(item.price) * quantity).quantize(Decimal("0.01"))
        miles_used, discount = miles_discount_for(subtotal, miles_amount, get_point_value())
        if discount < subtotal:
            raise InvalidRequest("Miles discount does not cover the total.")
        balance = _lock_wallet_balance(user)
        if miles_used > balance:
            raise InvalidRequest(f"Insufficient miles: you have {balance}.")

        booking = deal_purchase = None
        if kind == ItemKind.ROUTE:
            capacity.reserve(item.pk, time_slot, quantity)
            booking = Booking.objects.create(
                user=user,
                route=item,
                time_slot=time_slot,
                quantity=quantity,
                total_price=ZERO,
                status=Booking.Status.CONFIRMED,
                payment_method=PaymentMethod.MILES,
                miles_redeemed=miles_used,
            )
            reference_id = f"booking:{booking.pk}"
        else:
            deal_purchase = DealPurchase.objects.create(
                user=user,
                deal=item,
                quantity=quantity,
                total_price=ZERO,
                status=DealPurchase.Status.CONFIRMED,
                payment_method=PaymentMethod.MILES,
                miles_redeemed=miles_used,
            )
            Deal.objects.filter(pk=item.pk).update(purchases=F("purchases") + quantity)
            reference_id = f"deal_purchase:{deal_purchase.pk}"

        redeem_miles(
            user,
            miles_used,
            reference_id=reference_id,
            description=f"Paid {item.display_name} with miles",
        )
        reward_referrer(user)
        purchase = booking or deal_purchase
        transaction.on_commit(lambda: _queue_confirmation(purchase.pk, kind.value))

    logger.info(
        "settlement: miles purchase",
        extra={"user_id": user.pk, "kind": kind.value, "item_id": item.pk, "miles": miles_used},
    )
    return SettlementResult(booking=booking, deal_purchase=deal_purchase)


def claim_free_deal(*, user_id, deal_id, quantity: int = 1) -> SettlementResult:
    """Claim a zero-priced deal."""
    if quantity < 1:
        raise InvalidRequest("quantity must be at least 1.")
    with transaction.atomic():
        user = get_user(user_id)
        deal = get_active_item(ItemKind.DEAL, deal_id)
        if deal.price != 0:
            raise InvalidRequest("This deal is not free.")
        purchase = DealPurchase.objects.create(
            user=user,
            deal=deal,
            quantity=quantity,
            total_price=ZERO,
            status=DealPurchase.Status.CONFIRMED,
            payment_method=PaymentMethod.FREE,
        )
        Deal.objects.filter(pk=deal.pk).update(purchases=F("purchases") + quantity)
        transaction.on_commit(lambda: _queue_confirmation(purchase.pk, ItemKind.DEAL.value))

    logger.info("settlement: free deal claimed", extra={"user_id": user.pk, "deal_id": deal.pk})
    return SettlementResult(deal_purchase=purchase)
