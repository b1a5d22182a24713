"""Purchasable items: shuttle routes (ticketed per time slot) and partner deals."""

from __future__ import annotations

from django.core.validators import MinValueValidator
from django.db import models


class ItemKind(models.TextChoices):
    ROUTE = "route", "Route"
    DEAL = "deal", "Deal"


class ItemStatus(models.TextChoices):
    ACTIVE = "active", "active"
    CANCELLED = "cancelled", "cancelled"
    ARCHIVED = "archived", "archived"


class Route(models.Model):
    """A scheduled shuttle run sold as tickets per departure time slot."""

    kind = ItemKind.ROUTE

    pickup_name = models.CharField(max_length=140)
    dropoff_name = models.CharField(max_length=140)
    date = models.DateField()
    time_slots = models.JSONField(default=list, blank=True, help_text="Departure times as HH:MM.")
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        default=0,
    )
    max_capacity_per_slot = models.PositiveIntegerField(default=0)
    min_threshold = models.PositiveIntegerField(
        default=0,
        help_text="Tickets that must sell across all slots for the route to run.",
    )
    tickets_sold = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=ItemStatus.choices, default=ItemStatus.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "id"]
        indexes = [models.Index(fields=["status", "date"], name="route_status_date_idx")]

    def __str__(self) -> str:
        return f"{self.display_name} on {self.date}"

    @property
    def display_name(self) -> str:
        return f"Shuttle: {self.pickup_name} to {self.dropoff_name}"

    @property
    def item_date(self):
        return self.date

    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE

    def has_time_slot(self, time_slot: str) -> bool:
        return time_slot in (self.time_slots or [])


class Deal(models.Model):
    """A nightlife/venue deal sold alongside shuttle tickets."""

    kind = ItemKind.DEAL

    title = models.CharField(max_length=140)
    location_name = models.CharField(max_length=140, blank=True, default="")
    deal_date = models.DateField(null=True, blank=True)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        default=0,
    )
    purchases = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=ItemStatus.choices, default=ItemStatus.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["deal_date", "id"]
        indexes = [models.Index(fields=["status", "deal_date"], name="deal_status_date_idx")]

    def __str__(self) -> str:
        return self.title

    @property
    def display_name(self) -> str:
        return self.title

    @property
    def item_date(self):
        return self.deal_date

    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE
