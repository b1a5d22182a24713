from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class ShuttleUserAdmin(UserAdmin):
    list_display = ("username", "email", "is_driver", "referred_by", "is_staff")
    list_filter = ("is_driver", "is_staff", "is_active")
    fieldsets = UserAdmin.fieldsets + (("Shuttle", {"fields": ("phone", "is_driver", "referred_by")}),)
    raw_id_fields = ("referred_by",)
