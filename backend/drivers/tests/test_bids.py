import logging
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from core.errors import BidNotFound, InvalidRequest, InvalidState
from drivers import bids
from drivers.models import DriverBid, RideRequest
from drivers.tasks import expire_stale_bids

pytestmark = pytest.mark.django_db


@pytest.fixture
def ride_request(rider):
    return RideRequest.objects.create(
        requester=rider,
        pickup_location="Campus",
        dropoff_location="Airport",
        ride_date=date(2030, 6, 1),
        passengers=6,
    )


def test_place_bid_twice_keeps_one_row(ride_request, driver_user):
    first = bids.place_bid(ride_request.pk, driver_user, "120.00", "Sprinter van")
    second = bids.place_bid(ride_request.pk, driver_user, "95.50", "Sprinter van, discounted")

    assert first.pk == second.pk
    assert DriverBid.objects.filter(ride_request=ride_request, driver=driver_user).count() == 1
    second.refresh_from_db()
    assert second.amount == Decimal("95.50")
    assert second.notes == "Sprinter van, discounted"


def test_place_bid_logs_whether_the_bid_is_new(ride_request, driver_user, caplog):
    with caplog.at_level(logging.INFO, logger="drivers.bids"):
        bids.place_bid(ride_request.pk, driver_user, "120.00")
        bids.place_bid(ride_request.pk, driver_user, "110.00")

    placed = [record for record in caplog.records if record.getMessage() == "drivers: bid placed"]
    assert [record.bid_created for record in placed] == [True, False]


def test_place_bid_validation(ride_request, driver_user, rider):
    with pytest.raises(InvalidRequest):
        bids.place_bid(ride_request.pk, driver_user, "0")
    with pytest.raises(InvalidRequest):
        bids.place_bid(ride_request.pk, driver_user, "abc")
    with pytest.raises(InvalidRequest):
        bids.place_bid(ride_request.pk, rider, "50")


def test_list_bids_lowest_first_then_oldest(ride_request, driver_user, second_driver, django_user_model):
    third = django_user_model.objects.create_user(username="driver-three", password="x", is_driver=True)
    bids.place_bid(ride_request.pk, driver_user, "100")
    bids.place_bid(ride_request.pk, second_driver, "80")
    bids.place_bid(ride_request.pk, third, "100")

    ordered = list(bids.list_bids(ride_request.pk))

    assert [bid.driver_id for bid in ordered] == [second_driver.pk, driver_user.pk, third.pk]


def test_accept_bid_rejects_competitors_and_assigns(ride_request, driver_user, second_driver):
    winner = bids.place_bid(ride_request.pk, driver_user, "100")
    loser = bids.place_bid(ride_request.pk, second_driver, "110")

    accepted = bids.accept_bid(winner.pk)

    loser.refresh_from_db()
    ride_request.refresh_from_db()
    assert accepted.status == DriverBid.Status.ACCEPTED
    assert loser.status == DriverBid.Status.REJECTED
    assert ride_request.status == RideRequest.Status.ASSIGNED


def test_accepted_bid_cannot_be_replaced_or_withdrawn(ride_request, driver_user):
    bid = bids.place_bid(ride_request.pk, driver_user, "100")
    bids.accept_bid(bid.pk)

    with pytest.raises(InvalidState):
        bids.place_bid(ride_request.pk, driver_user, "90")
    with pytest.raises(InvalidState):
        bids.withdraw_bid(bid.pk, driver_user)


def test_withdraw_bid(ride_request, driver_user, second_driver):
    bid = bids.place_bid(ride_request.pk, driver_user, "100")

    with pytest.raises(BidNotFound):
        bids.withdraw_bid(bid.pk, second_driver)

    bids.withdraw_bid(bid.pk, driver_user)
    assert not DriverBid.objects.filter(pk=bid.pk).exists()


def test_reject_bid_only_from_active(ride_request, driver_user):
    bid = bids.place_bid(ride_request.pk, driver_user, "100")

    assert bids.reject_bid(bid.pk).status == DriverBid.Status.REJECTED
    with pytest.raises(InvalidState):
        bids.reject_bid(bid.pk)


def test_rejected_driver_can_bid_again(ride_request, driver_user):
    bid = bids.place_bid(ride_request.pk, driver_user, "100")
    bids.reject_bid(bid.pk)

    again = bids.place_bid(ride_request.pk, driver_user, "85")

    assert again.pk == bid.pk
    assert again.status == DriverBid.Status.ACTIVE


def test_expire_stale_bids(rider, driver_user):
    past = RideRequest.objects.create(
        requester=rider,
        pickup_location="A",
        dropoff_location="B",
        ride_date=timezone.localdate() - timedelta(days=1),
    )
    bid = DriverBid.objects.create(ride_request=past, driver=driver_user, amount=Decimal("50"))

    assert expire_stale_bids.delay().get() == 1
    bid.refresh_from_db()
    assert bid.status == DriverBid.Status.EXPIRED
