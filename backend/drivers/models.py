"""Private ride requests and the bids drivers place on them."""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class RideRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = "open", "open"
        ASSIGNED = "assigned", "assigned"
        CANCELLED = "cancelled", "cancelled"

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ride_requests",
    )
    pickup_location = models.CharField(max_length=255)
    dropoff_location = models.CharField(max_length=255)
    ride_date = models.DateField()
    ride_time = models.CharField(max_length=8, blank=True, default="")
    passengers = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    notes = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.OPEN)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["ride_date", "id"]

    def __str__(self) -> str:
        return f"Ride #{self.pk} {self.pickup_location} to {self.dropoff_location} on {self.ride_date}"


class DriverBid(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "active"
        ACCEPTED = "accepted", "accepted"
        REJECTED = "rejected", "rejected"
        EXPIRED = "expired", "expired"

    ride_request = models.ForeignKey(
        RideRequest,
        on_delete=models.CASCADE,
        related_name="bids",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="driver_bids",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["amount", "created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["ride_request", "driver"],
                name="driver_bid_unique_per_request",
            )
        ]

    def __str__(self) -> str:
        return f"Bid #{self.pk} {self.amount} by {self.driver_id} ({self.status})"
