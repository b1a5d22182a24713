from django.contrib import admin

from .models import CheckoutSession, CreditTransaction, MilesTransaction, WalletPoints


@admin.register(CheckoutSession)
class CheckoutSessionAdmin(admin.ModelAdmin):
    list_display = ("stripe_session_id", "user", "kind", "quantity", "total_amount", "status", "is_paid", "created_at")
    list_filter = ("status", "kind", "is_paid")
    search_fields = ("stripe_session_id", "stripe_payment_intent_id", "user__email")


@admin.register(MilesTransaction)
class MilesTransactionAdmin(admin.ModelAdmin):
    list_display = ("user", "kind", "points", "reference_id", "created_at")
    list_filter = ("kind",)
    search_fields = ("user__email", "reference_id")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WalletPoints)
class WalletPointsAdmin(admin.ModelAdmin):
    list_display = ("user", "points", "updated_at")
    readonly_fields = ("points",)


@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = ("user", "kind", "amount", "reference_id", "booking", "created_at")
    list_filter = ("kind",)
    search_fields = ("user__email", "reference_id", "stripe_id")

    def has_change_permission(self, request, obj=None):
        return False
