from django.contrib import admin

from .models import ReferralCode


@admin.register(ReferralCode)
class ReferralCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "user", "uses", "created_at")
    search_fields = ("code", "user__username", "user__email")
