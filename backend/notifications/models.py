from django.conf import settings
from django.db import models


class NotificationLog(models.Model):
    """One row per attempted rider email, kept for support lookups."""

    class Channel(models.TextChoices):
        EMAIL = "email", "Email"

    class PurchaseKind(models.TextChoices):
        ROUTE = "route", "Route booking"
        DEAL = "deal", "Deal purchase"

    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    channel = models.CharField(max_length=8, choices=Channel.choices, default=Channel.EMAIL)
    type = models.CharField(max_length=64)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notification_logs",
    )
    purchase_kind = models.CharField(max_length=8, choices=PurchaseKind.choices, blank=True)
    purchase_id = models.PositiveIntegerField(null=True, blank=True)
    recipient = models.EmailField(blank=True)
    status = models.CharField(max_length=8, choices=Status.choices)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["purchase_kind", "purchase_id"], name="notif_purchase_idx"),
            models.Index(fields=["status", "created_at"], name="notif_status_created_idx"),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        target = f"{self.purchase_kind}#{self.purchase_id}" if self.purchase_id else "-"
        return f"{self.type} {target} ({self.status})"
