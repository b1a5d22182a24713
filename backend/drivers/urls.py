from django.urls import path

from . import api

app_name = "drivers"

urlpatterns = [
    path("rides/<int:ride_request_id>/bids/", api.ride_bids, name="ride_bids"),
    path("bids/<int:bid_id>/", api.withdraw_bid, name="withdraw_bid"),
    path("bids/<int:bid_id>/accept/", api.accept_bid, name="accept_bid"),
    path("bids/<int:bid_id>/reject/", api.reject_bid, name="reject_bid"),
]
