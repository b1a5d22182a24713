from django.urls import path

from . import api

app_name = "payments"

urlpatterns = [
    path("create-checkout", api.create_checkout, name="create_checkout"),
    path("webhook", api.stripe_webhook, name="stripe_webhook"),
    path("process-refund", api.process_refund, name="process_refund"),
    path("pay-with-miles", api.pay_with_miles, name="pay_with_miles"),
    path("claim-free-deal", api.claim_free_deal, name="claim_free_deal"),
    path("api/wallet/<int:user_id>/", api.wallet, name="wallet"),
    path("api/admin/bookings/<int:booking_id>/confirm/", api.confirm_booking, name="confirm_booking"),
]
