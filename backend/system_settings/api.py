from __future__ import annotations

import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from core.errors import InvalidRequest
from core.settings_resolver import SettingKey, get_setting, set_setting

logger = logging.getLogger(__name__)


def _parse_key(raw_key: str) -> SettingKey:
    try:
        return SettingKey(raw_key)
    except ValueError:
        raise InvalidRequest(f"Unknown setting '{raw_key}'.")


def _serialize(value):
    return str(value) if isinstance(value, Decimal) else value


@api_view(["GET", "PUT"])
@permission_classes([IsAdminUser])
def system_setting_detail(request, key: str):
    """Read or update one typed system setting (point value, bonuses, referral discount)."""
    try:
        setting_key = _parse_key(key)
        if request.method == "PUT":
            data = request.data or {}
            if "value" not in data:
                raise InvalidRequest("value is required.")
            set_setting(
                setting_key,
                data["value"],
                updated_by=request.user,
                description=str(data.get("description") or ""),
            )
            logger.info(
                "system setting updated",
                extra={"key": setting_key.value, "user_id": request.user.id},
            )
    except InvalidRequest as exc:
        return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({"key": setting_key.value, "value": _serialize(get_setting(setting_key))})
