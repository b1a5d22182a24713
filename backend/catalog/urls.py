from django.urls import path

from . import api

app_name = "catalog"

urlpatterns = [
    path("routes/", api.routes, name="routes"),
    path("deals/", api.deals, name="deals"),
]
