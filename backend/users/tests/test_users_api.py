import pytest

from payments.ledger import get_miles_balance
from referrals.services import get_or_create_referral_code

pytestmark = pytest.mark.django_db

PASSWORD = "a-Strong-pass-123"


def test_signup_grants_bonus_and_issues_referral_code(api_client, django_user_model):
    response = api_client.post(
        "/api/users/signup/",
        {"email": "New.Rider@Example.com", "password": PASSWORD},
        format="json",
    )

    assert response.status_code == 201
    user = django_user_model.objects.get(email="new.rider@example.com")
    assert user.username == "newrider"
    assert user.referred_by is None
    assert get_miles_balance(user) == 100
    assert user.referral_code.code


def test_signup_with_referral_code_links_referrer(api_client, rider, django_user_model):
    code = get_or_create_referral_code(rider).code

    response = api_client.post(
        "/api/users/signup/",
        {"email": "friend@example.com", "password": PASSWORD, "referral_code": code.lower()},
        format="json",
    )

    assert response.status_code == 201
    assert django_user_model.objects.get(email="friend@example.com").referred_by == rider


def test_signup_with_unknown_referral_code(api_client, django_user_model):
    response = api_client.post(
        "/api/users/signup/",
        {"email": "friend@example.com", "password": PASSWORD, "referral_code": "ZZZZZZZZ"},
        format="json",
    )

    assert response.status_code == 400
    assert "referral_code" in response.data
    assert not django_user_model.objects.filter(email="friend@example.com").exists()


def test_signup_requires_email_or_phone(api_client):
    response = api_client.post("/api/users/signup/", {"password": PASSWORD}, format="json")

    assert response.status_code == 400


def test_signup_with_phone_only(api_client, django_user_model):
    response = api_client.post(
        "/api/users/signup/",
        {"phone": "(555) 010-2030", "password": PASSWORD},
        format="json",
    )

    assert response.status_code == 201
    assert django_user_model.objects.get(phone="+15550102030").username == "15550102030"


def test_token_login(api_client, rider):
    response = api_client.post(
        "/api/users/token/",
        {"username": "rider", "password": "testpass"},
        format="json",
    )

    assert response.status_code == 200
    assert "access" in response.data


def test_me_shows_wallet_and_code(api_client, rider):
    api_client.force_authenticate(user=rider)

    response = api_client.get("/api/users/me/")

    assert response.status_code == 200
    assert response.data["miles_balance"] == 100
    assert response.data["referral_code"] == get_or_create_referral_code(rider).code


def test_me_requires_auth(api_client):
    assert api_client.get("/api/users/me/").status_code == 401
