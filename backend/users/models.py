from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Rider/driver account. Identity is verified by the hosted auth provider."""

    phone = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        help_text="Optional E.164 formatted phone number.",
    )
    is_driver = models.BooleanField(default=False)
    referred_by = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="referrals",
        help_text="User whose referral code was used at signup.",
    )

    def display_name(self) -> str:
        return (self.get_full_name() or self.username or self.email or f"user-{self.pk}").strip()
