import pytest

from core.errors import CapacityExceeded, GatewayError

pytestmark = pytest.mark.django_db


def test_healthz_reports_database(client):
    response = client.get("/api/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": True}


def test_capacity_error_carries_remaining_seats():
    exc = CapacityExceeded(available=3)

    assert exc.available == 3
    assert str(exc) == "Not enough seats left for this time slot."


def test_gateway_error_is_not_retryable_by_default():
    assert GatewayError("card declined").retryable is False
    assert GatewayError("timeout", retryable=True).retryable is True
