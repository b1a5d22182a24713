from __future__ import annotations

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from core.settings_resolver import get_registration_miles_bonus
from payments.ledger import grant_signup_bonus

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid="users_grant_signup_bonus")
def _grant_signup_bonus(sender, instance, created: bool, raw: bool = False, **kwargs):
    if not created or raw:
        return
    bonus = get_registration_miles_bonus()
    if bonus <= 0:
        return
    grant_signup_bonus(instance, bonus)
    logger.info("signup bonus granted", extra={"user_id": instance.pk, "miles": bonus})
