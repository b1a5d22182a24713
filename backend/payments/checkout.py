"""Pricing and Stripe Checkout session creation for routes and deals."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from django.contrib.auth import get_user_model

from bookings import capacity
from catalog.models import ItemKind
from catalog.services import get_active_item
from core.errors import InvalidRequest
from core.settings_resolver import SettingKey, get_point_value, get_setting
from referrals.services import compute_referral_discount

from . import stripe_api
from .ledger import get_miles_balance
from .models import CheckoutSession

logger = logging.getLogger(__name__)

User = get_user_model()
TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SettlementMetadata:
    """Everything settlement needs, carried through Stripe as string metadata."""

    kind: ItemKind
    user_id: int
    item_id: int
    quantity: int
    total_amount: Decimal
    time_slot: str = ""
    miles_amount: int = 0
    miles_discount: Decimal = ZERO
    referral_code: str = ""
    referral_discount: Decimal = ZERO
    discount_type: str = ""

    def to_stripe_metadata(self) -> dict[str, str]:
        return {
            "type": self.kind.value,
            "user_id": str(self.user_id),
            "item_id": str(self.item_id),
            "time_slot": self.time_slot,
            "quantity": str(self.quantity),
            "total_amount": str(_money(self.total_amount)),
            "miles_amount": str(self.miles_amount),
            "miles_discount": str(_money(self.miles_discount)),
            "referral_code": self.referral_code,
            "referral_discount": str(_money(self.referral_discount)),
            "discount_type": self.discount_type,
        }

    @classmethod
    def from_stripe_metadata(cls, metadata: dict | None) -> "SettlementMetadata":
        data = dict(metadata or {})
        try:
            kind = ItemKind(data.get("type") or ItemKind.ROUTE)
            user_id = int(data["user_id"])
            item_id = int(data["item_id"])
            quantity = int(data.get("quantity") or 1)
            total_amount = Decimal(str(data.get("total_amount") or "0"))
            miles_amount = int(data.get("miles_amount") or 0)
            miles_discount = Decimal(str(data.get("miles_discount") or "0"))
            referral_discount = Decimal(str(data.get("referral_discount") or "0"))
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise InvalidRequest("Checkout session metadata is incomplete.") from exc

        time_slot = data.get("time_slot") or ""
        if kind == ItemKind.ROUTE and not time_slot:
            raise InvalidRequest("Checkout session metadata is missing the time slot.")
        if quantity < 1 or miles_amount < 0:
            raise InvalidRequest("Checkout session metadata is invalid.")
        return cls(
            kind=kind,
            user_id=user_id,
            item_id=item_id,
            quantity=quantity,
            total_amount=total_amount,
            time_slot=time_slot,
            miles_amount=miles_amount,
            miles_discount=miles_discount,
            referral_code=data.get("referral_code") or "",
            referral_discount=referral_discount,
            discount_type=data.get("discount_type") or "",
        )


@dataclass(frozen=True)
class PriceQuote:
    subtotal: Decimal
    miles_amount: int
    miles_discount: Decimal
    referral_code: str
    referral_discount: Decimal
    discount_type: str
    charge: Decimal


@dataclass(frozen=True)
class CheckoutResult:
    session_id: str
    url: str
    quote: PriceQuote


def miles_discount_for(subtotal: Decimal, miles_amount: int, point_value: Decimal) -> tuple[int, Decimal]:
    """
    Return ``(miles_used, discount)`` for a redemption request.

    The discount never exceeds the subtotal; miles beyond what the subtotal
    can absorb are not spent.
    """
    if miles_amount <= 0 or point_value <= 0:
        return 0, ZERO
    discount = Decimal(miles_amount) * point_value
    if discount <= subtotal:
        return miles_amount, _money(discount)
    needed = math.ceil(subtotal / point_value)
    return min(needed, miles_amount), _money(subtotal)


def quote_price(
    *,
    user,
    unit_price: Decimal,
    quantity: int,
    miles_amount: int = 0,
    referral_code: Optional[str] = None,
) -> PriceQuote:
    """Price a purchase: subtotal, miles discount, referral discount, charge."""
    if quantity < 1:
        raise InvalidRequest("quantity must be at least 1.")
    if miles_amount < 0:
        raise InvalidRequest("milesAmount cannot be negative.")

    subtotal = _money(Decimal(unit_price) * quantity)
    if miles_amount:
        balance = get_miles_balance(user)
        if miles_amount > balance:
            raise InvalidRequest(f"Insufficient miles: you have {balance}.")
    miles_used, miles_discount = miles_discount_for(subtotal, miles_amount, get_point_value())

    referral = compute_referral_discount(
        code=referral_code,
        user_id=user.pk,
        subtotal=subtotal,
        discount_type=get_setting(SettingKey.REFERRAL_DISCOUNT_TYPE),
        discount_value=get_setting(SettingKey.REFERRAL_DISCOUNT_VALUE),
    )
    referral_discount = referral.amount if referral else ZERO
    charge = max(ZERO, subtotal - miles_discount - referral_discount)
    return PriceQuote(
        subtotal=subtotal,
        miles_amount=miles_used,
        miles_discount=miles_discount,
        referral_code=referral.code if referral else "",
        referral_discount=referral_discount,
        discount_type=referral.discount_type if referral else "",
        charge=_money(charge),
    )


def get_user(user_id) -> User:
    try:
        return User.objects.get(pk=int(user_id))
    except (User.DoesNotExist, TypeError, ValueError):
        raise InvalidRequest("User not found.")


def _line_item_text(item, kind: ItemKind, time_slot: str, quantity: int) -> tuple[str, str]:
    parts = []
    if item.item_date:
        parts.append(item.item_date.isoformat())
    if kind == ItemKind.ROUTE:
        parts.append(f"departs {time_slot}")
    parts.append(f"{quantity} ticket(s)" if kind == ItemKind.ROUTE else f"quantity {quantity}")
    return item.display_name, ", ".join(parts)


def build_checkout_session(
    *,
    user_id,
    kind: ItemKind,
    item_id,
    quantity: int,
    time_slot: str = "",
    miles_amount: int = 0,
    referral_code: Optional[str] = None,
) -> CheckoutResult:
    """
    Price the purchase, pre-check capacity and open a hosted Checkout session.

    Nothing is booked here; settlement happens when Stripe reports payment.
    """
    user = get_user(user_id)
    item = get_active_item(kind, item_id)
    quote = quote_price(
        user=user,
        unit_price=item.price,
        quantity=quantity,
        miles_amount=miles_amount,
        referral_code=referral_code,
    )
    if kind == ItemKind.ROUTE:
        capacity.check_capacity(item, time_slot, quantity)
    else:
        time_slot = ""

    if quote.charge <= ZERO:
        raise InvalidRequest(
            "Nothing to charge: use pay-with-miles or claim-free-deal for fully covered purchases."
        )

    metadata = SettlementMetadata(
        kind=kind,
        user_id=user.pk,
        item_id=item.pk,
        quantity=quantity,
        total_amount=quote.charge,
        time_slot=time_slot,
        miles_amount=quote.miles_amount,
        miles_discount=quote.miles_discount,
        referral_code=quote.referral_code,
        referral_discount=quote.referral_discount,
        discount_type=quote.discount_type,
    )
    product_name, description = _line_item_text(item, kind, time_slot, quantity)
    session_id, url = stripe_api.create_checkout_session(
        kind=kind.value,
        product_name=product_name,
        description=description,
        amount_cents=stripe_api._to_cents(quote.charge),
        metadata=metadata.to_stripe_metadata(),
        client_reference_id=f"{kind.value}:{item.pk}:user:{user.pk}",
        customer_email=user.email or None,
    )

    CheckoutSession.objects.create(
        stripe_session_id=session_id,
        user=user,
        kind=kind.value,
        route=item if kind == ItemKind.ROUTE else None,
        deal=item if kind == ItemKind.DEAL else None,
        time_slot=time_slot,
        quantity=quantity,
        total_amount=quote.charge,
        miles_amount=quote.miles_amount,
        miles_discount=quote.miles_discount,
        referral_code=quote.referral_code,
        referral_discount=quote.referral_discount,
        discount_type=quote.discount_type,
        session_url=url,
    )
    logger.info(
        "checkout session created",
        extra={
            "session_id": session_id,
            "user_id": user.pk,
            "kind": kind.value,
            "item_id": item.pk,
            "quantity": quantity,
            "charge": str(quote.charge),
        },
    )
    return CheckoutResult(session_id=session_id, url=url, quote=quote)
