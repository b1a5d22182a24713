from django.conf import settings
from django.db import models
from django.db.models import Q


class CheckoutSession(models.Model):
    """A Stripe Checkout session awaiting (or past) settlement."""

    class Status(models.TextChoices):
        OPEN = "open", "open"
        SETTLING = "settling", "settling"
        SETTLED = "settled", "settled"
        FAILED = "failed", "failed"

    stripe_session_id = models.CharField(max_length=255, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="checkout_sessions",
    )
    kind = models.CharField(max_length=8, default="route")
    route = models.ForeignKey(
        "catalog.Route",
        on_delete=models.PROTECT,
        related_name="checkout_sessions",
        null=True,
        blank=True,
    )
    deal = models.ForeignKey(
        "catalog.Deal",
        on_delete=models.PROTECT,
        related_name="checkout_sessions",
        null=True,
        blank=True,
    )
    time_slot = models.CharField(max_length=8, blank=True, default="")
    quantity = models.PositiveIntegerField(default=1)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    miles_amount = models.PositiveIntegerField(default=0)
    miles_discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    referral_code = models.CharField(max_length=32, blank=True, default="")
    referral_discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_type = models.CharField(max_length=16, blank=True, default="")
    session_url = models.URLField(max_length=1024, blank=True, default="")
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.OPEN)
    is_paid = models.BooleanField(default=False)
    consumed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"CheckoutSession {self.stripe_session_id} ({self.status})"


class MilesTransaction(models.Model):
    """Signed entry in a user's miles ledger."""

    class Kind(models.TextChoices):
        SIGNUP_BONUS = "signup_bonus", "Signup bonus"
        REFERRAL_REWARD = "referral_reward", "Referral reward"
        REDEEM = "redeem", "Redeem"
        REFUND = "refund", "Refund"
        ADJUSTMENT = "adjustment", "Adjustment"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="miles_transactions",
    )
    points = models.IntegerField()
    kind = models.CharField(max_length=32, choices=Kind.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    reference_id = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "reference_id", "kind"],
                condition=Q(reference_id__isnull=False),
                name="miles_txn_unique_reference",
            )
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.kind} {self.points}"


class WalletPoints(models.Model):
    """Cached miles balance; always recomputable from MilesTransaction."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet",
    )
    points = models.IntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.user} {self.points} miles"


class CreditTransaction(models.Model):
    """Signed dollar entry recording purchases and refunds."""

    class Kind(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        REFUND = "refund", "Refund"
        ADJUSTMENT = "adjustment", "Adjustment"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="credit_transactions",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        related_name="credit_transactions",
        null=True,
        blank=True,
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    kind = models.CharField(max_length=32, choices=Kind.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    reference_id = models.CharField(max_length=255, null=True, blank=True)
    stripe_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Related Stripe PaymentIntent / Refund id.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "reference_id", "kind"],
                condition=Q(reference_id__isnull=False),
                name="credit_txn_unique_reference",
            )
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.kind} {self.amount}"
