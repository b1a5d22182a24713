from decimal import Decimal

import pytest

from core.errors import InvalidRequest
from core.settings_resolver import (
    SettingKey,
    clear_settings_cache,
    get_point_value,
    get_referral_reward,
    get_setting,
    set_setting,
)
from system_settings.models import SystemSetting

pytestmark = pytest.mark.django_db


def test_defaults_when_unset():
    assert get_point_value() == Decimal("0.02")
    assert get_referral_reward() == 300
    assert get_setting(SettingKey.REGISTRATION_MILES_BONUS) == 100
    assert get_setting(SettingKey.REFERRAL_DISCOUNT_TYPE) == "percent"


def test_set_setting_is_read_back_typed():
    set_setting(SettingKey.POINT_VALUE, "0.05")

    assert get_point_value() == Decimal("0.05")


def test_latest_version_wins():
    set_setting(SettingKey.REFERRAL_REWARD, 250)
    set_setting(SettingKey.REFERRAL_REWARD, 500)

    assert get_referral_reward() == 500
    assert SystemSetting.objects.filter(key="referral_reward").count() == 2


def test_negative_and_invalid_values_rejected():
    with pytest.raises(InvalidRequest):
        set_setting(SettingKey.POINT_VALUE, "-0.01")
    with pytest.raises(InvalidRequest):
        set_setting(SettingKey.REFERRAL_REWARD, "lots")
    with pytest.raises(InvalidRequest):
        set_setting(SettingKey.REFERRAL_DISCOUNT_TYPE, "bogus")


def test_unparseable_stored_value_falls_back_to_default():
    SystemSetting.objects.create(key="point_value", value_json="not-a-number", value_type="decimal")
    clear_settings_cache()

    assert get_point_value() == Decimal("0.02")


def test_signup_bonus_follows_setting(django_user_model):
    from payments.ledger import get_miles_balance

    set_setting(SettingKey.REGISTRATION_MILES_BONUS, 0)
    user = django_user_model.objects.create_user(username="nobonus", password="x")

    assert get_miles_balance(user) == 0


def test_settings_api_admin_only(api_client, rider):
    api_client.force_authenticate(user=rider)

    assert api_client.get("/api/settings/point_value/").status_code == 403


def test_settings_api_read_and_update(api_client, admin_user):
    api_client.force_authenticate(user=admin_user)

    response = api_client.put("/api/settings/point_value/", {"value": "0.03"}, format="json")
    assert response.status_code == 200
    assert response.data == {"key": "point_value", "value": "0.03"}

    bad = api_client.put("/api/settings/point_value/", {"value": "-1"}, format="json")
    assert bad.status_code == 400

    unknown = api_client.get("/api/settings/nope/")
    assert unknown.status_code == 400
    assert unknown.data == {"error": "Unknown setting 'nope'."}


def test_editing_a_row_stores_a_new_version():
    first = set_setting(SettingKey.REFERRAL_REWARD, 250)
    first.value_json = 275
    first.save()

    versions = list(
        SystemSetting.objects.filter(key="referral_reward").values_list("version", "value_json")
    )
    assert versions == [(2, 275), (1, 250)]
    clear_settings_cache()
    assert get_referral_reward() == 275
