from django.contrib import admin

from .models import Booking, DealPurchase


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "route",
        "time_slot",
        "quantity",
        "total_price",
        "status",
        "payment_method",
        "needs_reconciliation",
        "created_at",
    )
    list_filter = ("status", "payment_method", "needs_reconciliation")
    search_fields = ("stripe_session_id", "stripe_payment_intent_id", "user__email")
    readonly_fields = ("quantity", "stripe_session_id", "stripe_payment_intent_id", "miles_redeemed")


@admin.register(DealPurchase)
class DealPurchaseAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "deal",
        "quantity",
        "total_price",
        "status",
        "payment_method",
        "needs_reconciliation",
        "created_at",
    )
    list_filter = ("status", "payment_method", "needs_reconciliation")
    search_fields = ("stripe_session_id", "stripe_payment_intent_id", "user__email")
