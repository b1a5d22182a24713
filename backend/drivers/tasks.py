from __future__ import annotations

import logging

from celery import shared_task
from django.utils import timezone

from drivers.bids import expire_bids_before

logger = logging.getLogger(__name__)


@shared_task(name="drivers.expire_stale_bids")
def expire_stale_bids():
    """Expire active bids on ride requests whose date has passed."""
    expired = expire_bids_before(timezone.localdate())
    if expired:
        logger.info("drivers: expired %s stale bid(s)", expired)
    return expired
