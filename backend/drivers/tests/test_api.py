from datetime import date

import pytest

from drivers.models import DriverBid, RideRequest

pytestmark = pytest.mark.django_db


@pytest.fixture
def ride_request(rider):
    return RideRequest.objects.create(
        requester=rider,
        pickup_location="Campus",
        dropoff_location="Airport",
        ride_date=date(2030, 6, 1),
    )


def test_driver_places_and_lists_bids(api_client, ride_request, driver_user):
    api_client.force_authenticate(user=driver_user)

    created = api_client.post(
        f"/api/rides/{ride_request.pk}/bids/",
        {"amount": "75.00", "notes": "SUV"},
        format="json",
    )
    listed = api_client.get(f"/api/rides/{ride_request.pk}/bids/")

    assert created.status_code == 201
    assert created.data["amount"] == "75.00"
    assert listed.status_code == 200
    assert [row["id"] for row in listed.data] == [created.data["id"]]


def test_non_driver_cannot_bid(api_client, ride_request, other_rider):
    api_client.force_authenticate(user=other_rider)

    response = api_client.post(f"/api/rides/{ride_request.pk}/bids/", {"amount": "75"}, format="json")

    assert response.status_code == 400
    assert response.data == {"error": "Only drivers can bid on rides."}


def test_requester_accepts_bid(api_client, ride_request, rider, driver_user):
    bid = DriverBid.objects.create(ride_request=ride_request, driver=driver_user, amount="60")
    api_client.force_authenticate(user=rider)

    response = api_client.post(f"/api/bids/{bid.pk}/accept/")

    assert response.status_code == 200
    assert response.data["status"] == "accepted"


def test_other_user_cannot_accept(api_client, ride_request, driver_user, second_driver):
    bid = DriverBid.objects.create(ride_request=ride_request, driver=driver_user, amount="60")
    api_client.force_authenticate(user=second_driver)

    response = api_client.post(f"/api/bids/{bid.pk}/accept/")

    assert response.status_code == 403


def test_driver_withdraws_bid(api_client, ride_request, driver_user):
    bid = DriverBid.objects.create(ride_request=ride_request, driver=driver_user, amount="60")
    api_client.force_authenticate(user=driver_user)

    response = api_client.delete(f"/api/bids/{bid.pk}/")

    assert response.status_code == 204
    assert not DriverBid.objects.exists()
