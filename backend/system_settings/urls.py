from django.urls import path

from . import api

app_name = "system_settings"

urlpatterns = [
    path("<str:key>/", api.system_setting_detail, name="system_setting_detail"),
]
