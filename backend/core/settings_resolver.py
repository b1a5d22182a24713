from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from threading import Lock
from typing import Any

from core.errors import InvalidRequest

_CACHE_TTL_SECONDS = 5.0
_MISSING = object()


class SettingKey(str, Enum):
    """Admin-editable runtime settings stored in system_settings.SystemSetting."""

    POINT_VALUE = "point_value"
    REGISTRATION_MILES_BONUS = "registration_miles_bonus"
    REFERRAL_REWARD = "referral_reward"
    REFERRAL_DISCOUNT_TYPE = "referral_discount_type"
    REFERRAL_DISCOUNT_VALUE = "referral_discount_value"


@dataclass(frozen=True)
class SettingSpec:
    value_type: str
    default: Any
    choices: tuple[str, ...] = ()


SETTING_SPECS: dict[SettingKey, SettingSpec] = {
    SettingKey.POINT_VALUE: SettingSpec("decimal", Decimal("0.02")),
    SettingKey.REGISTRATION_MILES_BONUS: SettingSpec("int", 100),
    SettingKey.REFERRAL_REWARD: SettingSpec("int", 300),
    SettingKey.REFERRAL_DISCOUNT_TYPE: SettingSpec(
        "str", "percent", choices=("percent", "fixed")
    ),
    SettingKey.REFERRAL_DISCOUNT_VALUE: SettingSpec("decimal", Decimal("10")),
}


@dataclass(frozen=True)
class _CacheEntry:
    expires_at: float
    value: object


_cache: dict[str, _CacheEntry] = {}
_cache_lock = Lock()


def clear_settings_cache() -> None:
    with _cache_lock:
        _cache.clear()


def _clone_if_mutable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    return value


def _cache_get(key: str, now: float) -> object | None:
    with _cache_lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        if now >= entry.expires_at:
            _cache.pop(key, None)
            return None
        return entry.value


def _cache_set(key: str, now: float, value: object) -> None:
    with _cache_lock:
        _cache[key] = _CacheEntry(expires_at=now + _CACHE_TTL_SECONDS, value=value)


def _load_raw(key: str) -> object:
    """
    Resolve the raw stored value for a key with effective_at support.

    Selection rules:
    - key matches exactly
    - effective_at is NULL or <= timezone.now()
    - order by effective_at DESC NULLS LAST, then version DESC

    If the app is not installed, migrations aren't applied, or the DB is
    unavailable, the key is treated as missing.
    """
    try:
        from django.apps import apps as django_apps

        if not django_apps.ready or not django_apps.is_installed("system_settings"):
            return _MISSING
        SystemSetting = django_apps.get_model("system_settings", "SystemSetting")
        from django.db.models import F, Q
        from django.utils import timezone

        now = timezone.now()
        value = (
            SystemSetting.objects.filter(key=key)
            .filter(Q(effective_at__isnull=True) | Q(effective_at__lte=now))
            .order_by(F("effective_at").desc(nulls_last=True), "-version")
            .values_list("value_json", flat=True)
            .first()
        )
    except Exception:
        return _MISSING
    return _MISSING if value is None else value


def get_raw_setting(key: str, default: Any) -> Any:
    """Return the stored value for ``key`` using a 5s in-process TTL cache (misses included)."""
    now_mono = time.monotonic()
    cached = _cache_get(key, now_mono)
    if cached is not None:
        return default if cached is _MISSING else _clone_if_mutable(cached)

    value = _load_raw(key)
    _cache_set(key, now_mono, value)
    return default if value is _MISSING else _clone_if_mutable(value)


def coerce_setting_value(key: SettingKey, value: Any) -> Any:
    """Coerce a stored or submitted value to the key's declared type."""
    spec = SETTING_SPECS[key]
    if spec.value_type == "decimal":
        if isinstance(value, bool):
            raise InvalidRequest(f"{key.value} must be a number.")
        try:
            coerced = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidRequest(f"{key.value} must be a number.") from exc
        if not coerced.is_finite():
            raise InvalidRequest(f"{key.value} must be a number.")
        return coerced
    if spec.value_type == "int":
        if isinstance(value, bool):
            raise InvalidRequest(f"{key.value} must be an integer.")
        try:
            return int(str(value))
        except (TypeError, ValueError) as exc:
            raise InvalidRequest(f"{key.value} must be an integer.") from exc
    coerced = str(value)
    if spec.choices and coerced not in spec.choices:
        raise InvalidRequest(f"{key.value} must be one of: {', '.join(spec.choices)}.")
    return coerced


def get_setting(key: SettingKey) -> Any:
    """Read-through accessor returning the typed value for ``key``, or its default."""
    spec = SETTING_SPECS[key]
    raw = get_raw_setting(key.value, _MISSING)
    if raw is _MISSING:
        return spec.default
    try:
        return coerce_setting_value(key, raw)
    except InvalidRequest:
        return spec.default


def get_point_value() -> Decimal:
    return get_setting(SettingKey.POINT_VALUE)


def get_registration_miles_bonus() -> int:
    return get_setting(SettingKey.REGISTRATION_MILES_BONUS)


def get_referral_reward() -> int:
    return get_setting(SettingKey.REFERRAL_REWARD)


def set_setting(key: SettingKey, value: Any, *, updated_by=None, description: str = ""):
    """Persist a new value for ``key``. Numeric settings may not be negative."""
    from system_settings.models import SystemSetting

    spec = SETTING_SPECS[key]
    coerced = coerce_setting_value(key, value)
    if spec.value_type in {"decimal", "int"} and coerced < 0:
        raise InvalidRequest(f"{key.value} cannot be negative.")

    stored = str(coerced) if spec.value_type == "decimal" else coerced
    setting = SystemSetting.objects.create(
        key=key.value,
        value_json=stored,
        value_type=spec.value_type,
        description=description,
        updated_by=updated_by,
    )
    clear_settings_cache()
    return setting
