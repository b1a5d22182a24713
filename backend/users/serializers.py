from __future__ import annotations

import logging
import re
from typing import Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from rest_framework import serializers

from payments.ledger import get_miles_balance
from referrals.services import get_or_create_referral_code, lookup_referral_owner

User = get_user_model()
logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r"\D+")
USERNAME_UNSAFE = re.compile(r"[^a-z0-9]+")


def normalize_phone(raw_phone: Optional[str]) -> Optional[str]:
    """Return ``+`` followed by digits, assuming a US number for 10 digits; None when blank."""
    digits = NON_DIGITS.sub("", raw_phone or "")
    if not digits:
        return None
    if len(digits) == 10:
        digits = "1" + digits
    if not 11 <= len(digits) <= 15:
        raise serializers.ValidationError("Enter a valid phone number.")
    return "+" + digits


def unique_username(email: str = "", phone: str = "") -> str:
    """Derive a free username from the email local part or the phone digits."""
    seed = email.split("@", 1)[0] if email else phone.lstrip("+")
    base = USERNAME_UNSAFE.sub("", seed.lower()) or "rider"
    candidate, n = base, 0
    while User.objects.filter(username=candidate).exists():
        n += 1
        candidate = f"{base}{n}"
    return candidate


class ProfileSerializer(serializers.ModelSerializer):
    miles_balance = serializers.SerializerMethodField()
    referral_code = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone",
            "first_name",
            "last_name",
            "is_driver",
            "miles_balance",
            "referral_code",
        ]
        read_only_fields = ["id", "username", "email", "is_driver"]

    def get_miles_balance(self, user) -> int:
        return get_miles_balance(user)

    def get_referral_code(self, user) -> str:
        return get_or_create_referral_code(user).code

    def validate_phone(self, value):
        phone = normalize_phone(value)
        taken = User.objects.filter(phone=phone).exclude(pk=self.instance.pk).exists() if phone else False
        if taken:
            raise serializers.ValidationError("This phone number is already registered.")
        return phone


class SignupSerializer(serializers.ModelSerializer):
    """
    Rider signup by email or phone.

    ``referral_code`` links the new account to the friend who shared it; the
    friend is rewarded later, on the new rider's first confirmed purchase.
    """

    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, style={"input_type": "password"})
    referral_code = serializers.CharField(required=False, allow_blank=True, write_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "email", "phone", "password", "first_name", "last_name", "referral_code"]
        read_only_fields = ["id", "username"]

    def validate_email(self, value: str) -> str:
        email = (value or "").strip().lower()
        if email and User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("This email is already registered.")
        return email

    def validate_phone(self, value: str) -> Optional[str]:
        phone = normalize_phone(value)
        if phone and User.objects.filter(phone=phone).exists():
            raise serializers.ValidationError("This phone number is already registered.")
        return phone

    def validate_password(self, value: str) -> str:
        validate_password(value)
        return value

    def validate_referral_code(self, value: str):
        if not (value or "").strip():
            return None
        referrer = lookup_referral_owner(value)
        if referrer is None:
            raise serializers.ValidationError("Referral code is not valid.")
        return referrer

    def validate(self, attrs: dict) -> dict:
        if not attrs.get("email") and not attrs.get("phone"):
            raise serializers.ValidationError("Provide an email or phone number.")
        attrs["email"] = attrs.get("email") or ""
        attrs["phone"] = attrs.get("phone") or None
        attrs["referred_by"] = attrs.pop("referral_code", None)
        return attrs

    def create(self, validated_data: dict):
        password = validated_data.pop("password")
        username = unique_username(validated_data["email"], validated_data["phone"] or "")
        with transaction.atomic():
            user = User.objects.create_user(username=username, password=password, **validated_data)
            get_or_create_referral_code(user)
        logger.info(
            "users: signup",
            extra={"user_id": user.pk, "referrer_id": user.referred_by_id},
        )
        return user
