from django.contrib import admin

from .models import DriverBid, RideRequest


class DriverBidInline(admin.TabularInline):
    model = DriverBid
    extra = 0
    readonly_fields = ("driver", "amount", "status", "created_at")


@admin.register(RideRequest)
class RideRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "requester", "pickup_location", "dropoff_location", "ride_date", "passengers", "status")
    list_filter = ("status", "ride_date")
    inlines = [DriverBidInline]


@admin.register(DriverBid)
class DriverBidAdmin(admin.ModelAdmin):
    list_display = ("id", "ride_request", "driver", "amount", "status", "updated_at")
    list_filter = ("status",)
