"""Database models for shuttle ticket bookings and deal purchases."""

from __future__ import annotations

from django.conf import settings
from django.db import models

from catalog.models import Deal, Route


class PaymentMethod(models.TextChoices):
    CARD = "card", "card"
    MILES = "miles", "miles"
    FREE = "free", "free"


class Booking(models.Model):
    """Tickets for one time slot of a route. Quantity never changes after creation."""

    class Status(models.TextChoices):
        PENDING = "pending", "pending"
        CONFIRMED = "confirmed", "confirmed"
        COMPLETED = "completed", "completed"
        CANCELLED = "cancelled", "cancelled"
        REFUNDED = "refunded", "refunded"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="ticket_bookings",
        on_delete=models.CASCADE,
    )
    route = models.ForeignKey(
        Route,
        related_name="bookings",
        on_delete=models.PROTECT,
    )
    time_slot = models.CharField(max_length=8)
    quantity = models.PositiveIntegerField()
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_method = models.CharField(
        max_length=8,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CARD,
    )
    stripe_session_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    miles_redeemed = models.PositiveIntegerField(default=0)
    discount_code = models.CharField(max_length=32, null=True, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    discount_type = models.CharField(max_length=16, null=True, blank=True)
    needs_reconciliation = models.BooleanField(
        default=False,
        help_text="Paid after the slot sold out; an admin must confirm or refund.",
    )
    reconciliation_reason = models.CharField(max_length=255, blank=True, default="")
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["route", "time_slot", "status"], name="booking_route_slot_status_idx"),
            models.Index(fields=["user", "status"], name="booking_user_status_idx"),
            models.Index(fields=["stripe_payment_intent_id"], name="booking_payment_intent_idx"),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        return f"Booking #{self.pk} for route {self.route_id} at {self.time_slot} ({self.status})"

    def holds_seats(self) -> bool:
        """Return True if the booking counts against slot capacity."""
        return self.status in {self.Status.CONFIRMED, self.Status.COMPLETED}

    def awaiting_reconciliation(self) -> bool:
        return self.status == self.Status.PENDING and self.needs_reconciliation


class DealPurchase(models.Model):
    """A paid, miles-funded or free claim of a deal."""

    class Status(models.TextChoices):
        CONFIRMED = "confirmed", "confirmed"
        COMPLETED = "completed", "completed"
        CANCELLED = "cancelled", "cancelled"
        REFUNDED = "refunded", "refunded"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="deal_purchases",
        on_delete=models.CASCADE,
    )
    deal = models.ForeignKey(
        Deal,
        related_name="deal_purchases",
        on_delete=models.PROTECT,
    )
    quantity = models.PositiveIntegerField()
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.CONFIRMED)
    payment_method = models.CharField(
        max_length=8,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CARD,
    )
    stripe_session_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    miles_redeemed = models.PositiveIntegerField(default=0)
    discount_code = models.CharField(max_length=32, null=True, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    discount_type = models.CharField(max_length=16, null=True, blank=True)
    needs_reconciliation = models.BooleanField(
        default=False,
        help_text="Settled with more miles than the wallet held; an admin must review.",
    )
    reconciliation_reason = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="dealpurchase_user_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Deal purchase #{self.pk} for deal {self.deal_id} ({self.status})"
