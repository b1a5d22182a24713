from django.contrib import admin

from core.settings_resolver import clear_settings_cache

from .models import SystemSetting


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "version", "value_json", "value_type", "effective_at", "updated_by", "created_at")
    list_filter = ("key",)
    readonly_fields = ("version", "created_at")

    def save_model(self, request, obj, form, change):
        # Saving stores a new version; the edited row itself is left intact.
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
        clear_settings_cache()
