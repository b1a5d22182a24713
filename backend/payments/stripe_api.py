"""Stripe helpers for shuttle ticket and deal checkout."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from django.conf import settings

from core.errors import GatewayError

logger = logging.getLogger(__name__)
IDEMPOTENCY_VERSION = "v1"
ALREADY_REFUNDED_CODES = {"charge_already_refunded", "resource_missing"}


class StripeConfigurationError(GatewayError):
    """Stripe is not configured correctly in the environment."""


class StripeTransientError(GatewayError):
    """Temporary Stripe/API issue that should be retried."""

    def __init__(self, message: str = ""):
        super().__init__(message or "Temporary Stripe error, please retry.", retryable=True)


class StripePaymentError(GatewayError):
    """Permanent failure reported by Stripe."""


def _get_stripe_api_key() -> str:
    """Return the configured Stripe API key or raise if missing."""
    api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    if not api_key:
        raise StripeConfigurationError("Stripe secret key not configured.")
    return api_key


def _ensure_stripe_key() -> None:
    """Configure the SDK key and a bounded HTTP timeout before each call."""
    stripe.api_key = _get_stripe_api_key()
    timeout = int(getattr(settings, "STRIPE_TIMEOUT_SECONDS", 20) or 20)
    client = getattr(stripe, "default_http_client", None)
    if getattr(client, "_shuttle_timeout", None) != timeout:
        client = stripe.RequestsClient(timeout=timeout)
        client._shuttle_timeout = timeout
        stripe.default_http_client = client


def _to_cents(amount: Decimal) -> int:
    """Convert Decimal dollars to integer cents, rounding to the nearest cent."""
    cents = (amount * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def _handle_stripe_error(exc: stripe.StripeError) -> None:
    """Map Stripe SDK errors onto internal exception types."""
    if isinstance(exc, stripe.CardError):
        message = exc.user_message or "Your card was declined."
        raise StripePaymentError(message) from exc
    if isinstance(
        exc,
        (
            stripe.RateLimitError,
            stripe.APIConnectionError,
            stripe.APIError,
        ),
    ):
        raise StripeTransientError() from exc
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        raise StripeConfigurationError("Stripe credentials are invalid or unauthorized.") from exc
    if isinstance(exc, stripe.InvalidRequestError):
        raise StripePaymentError(exc.user_message or "Invalid payment request.") from exc
    raise StripePaymentError(exc.user_message or "Stripe payment failure.") from exc


def _get_frontend_origin() -> str:
    """Return the configured frontend origin or a local fallback."""
    configured = (getattr(settings, "FRONTEND_ORIGIN", "") or "").strip()
    base = configured or "http://localhost:5173"
    return base.rstrip("/") or base


def checkout_urls(kind: str) -> tuple[str, str]:
    """Return the success and cancel URLs for a checkout of ``kind``."""
    base_origin = _get_frontend_origin()
    success_url = f"{base_origin}/booking-success?type={kind}&session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = f"{base_origin}/booking-cancelled?type={kind}"
    return success_url, cancel_url


def _read(obj: Any, field: str, default: Any = None) -> Any:
    value = getattr(obj, field, None)
    if value is None and hasattr(obj, "get"):
        value = obj.get(field, default)
    return default if value is None else value


def create_checkout_session(
    *,
    kind: str,
    product_name: str,
    description: str,
    amount_cents: int,
    metadata: dict[str, str],
    client_reference_id: str,
    customer_email: str | None = None,
) -> tuple[str, str]:
    """Create a hosted Checkout session and return ``(session_id, url)``."""
    if amount_cents <= 0:
        raise StripePaymentError("Checkout total must be greater than zero.")
    _ensure_stripe_key()
    success_url, cancel_url = checkout_urls(kind)

    params: dict[str, Any] = {
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": client_reference_id,
        "metadata": {"env": getattr(settings, "STRIPE_ENV", "dev") or "dev", **metadata},
        "payment_intent_data": {"metadata": metadata},
        "line_items": [
            {
                "price_data": {
                    "currency": getattr(settings, "STRIPE_CURRENCY", "usd") or "usd",
                    "unit_amount": amount_cents,
                    "product_data": {
                        "name": product_name,
                        "description": description,
                    },
                },
                "quantity": 1,
            }
        ],
    }
    if customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as exc:
        logger.warning(
            "stripe: checkout session create failed",
            extra={"client_reference_id": client_reference_id, "error": str(exc)},
        )
        _handle_stripe_error(exc)

    session_id = _read(session, "id")
    session_url = _read(session, "url")
    if not session_id or not session_url:
        raise StripeConfigurationError("Stripe did not return a checkout session URL.")
    return session_id, session_url


def create_refund(*, payment_intent_id: str, idempotency_key: str, metadata: dict[str, str] | None = None) -> str | None:
    """
    Refund a PaymentIntent in full.

    Returns the refund id, or None when Stripe reports the charge as already
    refunded or missing, which callers treat as done.
    """
    _ensure_stripe_key()
    try:
        refund = stripe.Refund.create(
            payment_intent=payment_intent_id,
            metadata=metadata or {},
            idempotency_key=f"{idempotency_key}:{IDEMPOTENCY_VERSION}",
        )
    except stripe.InvalidRequestError as exc:
        if getattr(exc, "code", None) in ALREADY_REFUNDED_CODES:
            logger.info(
                "stripe: refund already applied",
                extra={"payment_intent_id": payment_intent_id, "code": exc.code},
            )
            return None
        _handle_stripe_error(exc)
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)
    return _read(refund, "id")


def construct_webhook_event(payload: bytes, sig_header: str):
    """Verify the Stripe signature and return the parsed event."""
    endpoint_secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    if not endpoint_secret:
        raise StripeConfigurationError("Stripe webhook secret not configured.")
    return stripe.Webhook.construct_event(
        payload=payload,
        sig_header=sig_header,
        secret=endpoint_secret,
    )
