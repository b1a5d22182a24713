import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


PAYMENT_METHOD_CHOICES = [("card", "card"), ("miles", "miles"), ("free", "free")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("time_slot", models.CharField(max_length=8)),
                ("quantity", models.PositiveIntegerField()),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "pending"),
                            ("confirmed", "confirmed"),
                            ("completed", "completed"),
                            ("cancelled", "cancelled"),
                            ("refunded", "refunded"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, default="card", max_length=8)),
                ("stripe_session_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("stripe_payment_intent_id", models.CharField(blank=True, default="", max_length=255)),
                ("miles_redeemed", models.PositiveIntegerField(default=0)),
                ("discount_code", models.CharField(blank=True, max_length=32, null=True)),
                ("discount_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("discount_type", models.CharField(blank=True, max_length=16, null=True)),
                (
                    "needs_reconciliation",
                    models.BooleanField(
                        default=False,
                        help_text="Paid after the slot sold out; an admin must confirm or refund.",
                    ),
                ),
                ("reconciliation_reason", models.CharField(blank=True, default="", max_length=255)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "route",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="catalog.route",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ticket_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["route", "time_slot", "status"], name="booking_route_slot_status_idx"),
                    models.Index(fields=["user", "status"], name="booking_user_status_idx"),
                    models.Index(fields=["stripe_payment_intent_id"], name="booking_payment_intent_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DealPurchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField()),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("confirmed", "confirmed"),
                            ("completed", "completed"),
                            ("cancelled", "cancelled"),
                            ("refunded", "refunded"),
                        ],
                        default="confirmed",
                        max_length=16,
                    ),
                ),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, default="card", max_length=8)),
                ("stripe_session_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("stripe_payment_intent_id", models.CharField(blank=True, default="", max_length=255)),
                ("miles_redeemed", models.PositiveIntegerField(default=0)),
                ("discount_code", models.CharField(blank=True, max_length=32, null=True)),
                ("discount_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("discount_type", models.CharField(blank=True, max_length=16, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "deal",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="deal_purchases",
                        to="catalog.deal",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deal_purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="dealpurchase_user_status_idx"),
                ],
            },
        ),
    ]
