import django.core.validators
from django.db import migrations, models


STATUS_CHOICES = [("active", "active"), ("cancelled", "cancelled"), ("archived", "archived")]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Route",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("pickup_name", models.CharField(max_length=140)),
                ("dropoff_name", models.CharField(max_length=140)),
                ("date", models.DateField()),
                ("time_slots", models.JSONField(blank=True, default=list, help_text="Departure times as HH:MM.")),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=8,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("max_capacity_per_slot", models.PositiveIntegerField(default=0)),
                (
                    "min_threshold",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Tickets that must sell across all slots for the route to run.",
                    ),
                ),
                ("tickets_sold", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="active", max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["date", "id"],
                "indexes": [models.Index(fields=["status", "date"], name="route_status_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="Deal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=140)),
                ("location_name", models.CharField(blank=True, default="", max_length=140)),
                ("deal_date", models.DateField(blank=True, null=True)),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=8,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("purchases", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="active", max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["deal_date", "id"],
                "indexes": [models.Index(fields=["status", "deal_date"], name="deal_status_date_idx")],
            },
        ),
    ]
