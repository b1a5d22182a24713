"""Shared fixtures for booking, payment and refund tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable

import pytest
from django.contrib.auth import get_user_model

from bookings.models import Booking
from catalog.models import Deal, Route
from payments import stripe_api

User = get_user_model()


def _create_user(*, username: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass",
        **extra,
    )


@pytest.fixture
def rider():
    return _create_user(username="rider")


@pytest.fixture
def other_rider():
    return _create_user(username="other-rider")


@pytest.fixture
def admin_user():
    return _create_user(username="admin", is_staff=True)


@pytest.fixture
def driver_user():
    return _create_user(username="driver", is_driver=True)


@pytest.fixture
def second_driver():
    return _create_user(username="driver-two", is_driver=True)


@pytest.fixture
def route():
    return Route.objects.create(
        pickup_name="Campus",
        dropoff_name="Downtown",
        date=date(2030, 5, 17),
        time_slots=["18:00", "20:00"],
        price=Decimal("25.00"),
        max_capacity_per_slot=10,
        min_threshold=5,
    )


@pytest.fixture
def deal():
    return Deal.objects.create(
        title="Two-for-one cover",
        location_name="The Venue",
        deal_date=date(2030, 5, 17),
        price=Decimal("15.00"),
    )


@pytest.fixture
def free_deal():
    return Deal.objects.create(
        title="Free drink voucher",
        location_name="The Venue",
        deal_date=date(2030, 5, 17),
        price=Decimal("0.00"),
    )


@pytest.fixture
def booking_factory(rider, route) -> Callable[..., Booking]:
    """Create bookings directly, bypassing capacity and payment."""

    def _factory(**overrides) -> Booking:
        defaults = {
            "user": rider,
            "route": route,
            "time_slot": "18:00",
            "quantity": 1,
            "total_price": Decimal("25.00"),
            "status": Booking.Status.CONFIRMED,
        }
        defaults.update(overrides)
        return Booking.objects.create(**defaults)

    return _factory


@pytest.fixture
def stripe_checkout_calls(monkeypatch):
    """Replace stripe.checkout.Session.create; returns the captured kwargs."""
    calls: list[dict] = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": f"cs_test_{len(calls)}", "url": f"https://checkout.stripe.test/{len(calls)}"}

    monkeypatch.setattr(
        stripe_api.stripe.checkout,
        "Session",
        type("MockSession", (), {"create": staticmethod(fake_create)}),
    )
    return calls


@pytest.fixture
def stripe_refund_calls(monkeypatch):
    """Replace stripe.Refund.create; returns the captured kwargs."""
    calls: list[dict] = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": f"re_test_{len(calls)}"}

    monkeypatch.setattr(
        stripe_api.stripe,
        "Refund",
        type("MockRefund", (), {"create": staticmethod(fake_create)}),
    )
    return calls
