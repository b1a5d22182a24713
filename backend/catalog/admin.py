from django.contrib import admin

from .models import Deal, Route


@admin.register(Route)
class RouteAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "pickup_name",
        "dropoff_name",
        "date",
        "price",
        "max_capacity_per_slot",
        "tickets_sold",
        "status",
    )
    list_filter = ("status", "date")
    search_fields = ("pickup_name", "dropoff_name")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "location_name", "deal_date", "price", "purchases", "status")
    list_filter = ("status", "deal_date")
    search_fields = ("title", "location_name")

    def has_delete_permission(self, request, obj=None):
        return False
