from __future__ import annotations

import logging
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string

from notifications.models import NotificationLog

logger = logging.getLogger(__name__)


def _render(template: str, context: dict) -> str:
    """Render a template relative to the notifications app."""
    return render_to_string(template, context).strip()


def _build_email_context(extra: Optional[dict]) -> dict:
    frontend_origin = (getattr(settings, "FRONTEND_ORIGIN", "") or "").rstrip("/")
    context = {
        "site_name": getattr(settings, "SITE_NAME", "ULimo"),
        "frontend_origin": frontend_origin,
        "account_url": f"{frontend_origin}/account" if frontend_origin else "",
    }
    context.update(extra or {})
    return context


def _log_notification(
    type_: str,
    status: str,
    *,
    recipient: str = "",
    user_id: int | None = None,
    purchase_kind: str = "",
    purchase_id: int | None = None,
    error: str | None = None,
) -> None:
    try:
        NotificationLog.objects.create(
            channel=NotificationLog.Channel.EMAIL,
            type=type_,
            status=status,
            recipient=recipient or "",
            user_id=user_id,
            purchase_kind=purchase_kind,
            purchase_id=purchase_id,
            error=error or "",
        )
    except Exception:
        logger.exception(
            "notifications: failed to persist notification log",
            extra={"type": type_, "status": status},
        )


def _prepare_email_bodies(subject: str, template: str, context: dict) -> tuple[str, str | None]:
    context_with_brand = _build_email_context(context)
    context_with_brand["subject"] = subject
    body = _render(f"email/{template}.txt", context_with_brand)
    try:
        html_body = _render(f"email/{template}.html", context_with_brand)
    except TemplateDoesNotExist:
        html_body = None
    return body, html_body


def _send_email_logged(
    type_: str,
    *,
    to_email: str | None,
    subject: str,
    template: str,
    context: dict,
    user_id: int | None = None,
    purchase_kind: str = "",
    purchase_id: int | None = None,
) -> bool:
    log_fields = {
        "recipient": to_email or "",
        "user_id": user_id,
        "purchase_kind": purchase_kind,
        "purchase_id": purchase_id,
    }
    if not to_email:
        _log_notification(
            type_,
            NotificationLog.Status.FAILED,
            error="missing recipient email",
            **log_fields,
        )
        logger.warning("notifications: cannot send email without recipient")
        return False

    text_body, html_body = _prepare_email_bodies(subject, template, context)
    message = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to_email],
    )
    if html_body:
        message.attach_alternative(html_body, "text/html")

    try:
        message.send(fail_silently=False)
    except Exception as exc:
        logger.exception(
            "notifications: email send failed",
            extra={"type": type_, "purchase_kind": purchase_kind, "purchase_id": purchase_id},
        )
        _log_notification(
            type_,
            NotificationLog.Status.FAILED,
            error=str(exc) or exc.__class__.__name__,
            **log_fields,
        )
        return False

    _log_notification(type_, NotificationLog.Status.SENT, **log_fields)
    return True


def _load_purchase(kind: str, purchase_id: int):
    from bookings.models import Booking, DealPurchase

    if kind == "deal":
        return DealPurchase.objects.select_related("deal", "user").filter(pk=purchase_id).first()
    return Booking.objects.select_related("route", "user").filter(pk=purchase_id).first()


@shared_task(name="notifications.send_booking_confirmation_email", queue="emails")
def send_booking_confirmation_email(purchase_id: int, kind: str = "route"):
    """Email the buyer a confirmation for a ticket booking or deal purchase."""
    purchase = _load_purchase(kind, purchase_id)
    if purchase is None:
        logger.warning("notifications: %s purchase %s no longer exists", kind, purchase_id)
        return

    item = purchase.deal if kind == "deal" else purchase.route
    context = {
        "name": purchase.user.display_name(),
        "purchase": purchase,
        "item_name": item.display_name,
        "item_date": item.item_date,
        "time_slot": getattr(purchase, "time_slot", ""),
        "quantity": purchase.quantity,
        "total_price": purchase.total_price,
        "miles_redeemed": purchase.miles_redeemed,
        "pending_review": kind == "route" and purchase.awaiting_reconciliation(),
    }
    _send_email_logged(
        f"{kind}_purchase_confirmation",
        to_email=purchase.user.email,
        subject=f"Your {item.display_name} booking",
        template="booking_confirmation",
        context=context,
        user_id=purchase.user_id,
        purchase_kind=kind,
        purchase_id=purchase.pk,
    )


@shared_task(name="notifications.send_refund_issued_email", queue="emails")
def send_refund_issued_email(booking_id: int):
    """Tell the rider their ticket booking was refunded."""
    purchase = _load_purchase("route", booking_id)
    if purchase is None:
        logger.warning("notifications: booking %s no longer exists", booking_id)
        return
    context = {
        "name": purchase.user.display_name(),
        "purchase": purchase,
        "item_name": purchase.route.display_name,
        "item_date": purchase.route.date,
        "time_slot": purchase.time_slot,
        "total_price": purchase.total_price,
        "miles_redeemed": purchase.miles_redeemed,
    }
    _send_email_logged(
        "booking_refund_issued",
        to_email=purchase.user.email,
        subject=f"Refund issued for {purchase.route.display_name}",
        template="refund_issued",
        context=context,
        user_id=purchase.user_id,
        purchase_kind="route",
        purchase_id=purchase.pk,
    )
