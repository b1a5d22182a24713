from __future__ import annotations

import logging

from celery import shared_task
from django.contrib.auth import get_user_model

from payments.ledger import recompute_wallet_balance

logger = logging.getLogger(__name__)
User = get_user_model()


@shared_task(name="payments.reconcile_wallet_balances")
def reconcile_wallet_balances():
    """
    Rewrite every cached miles balance from the ledger.
    Safe to run repeatedly; only drifted wallets are written.
    """
    repaired = 0
    checked = 0
    for user in User.objects.filter(miles_transactions__isnull=False).distinct().iterator():
        checked += 1
        previous, current = recompute_wallet_balance(user)
        if previous != current:
            repaired += 1
    logger.info(
        "payments: wallet reconciliation finished",
        extra={"checked": checked, "repaired": repaired},
    )
    return {"checked": checked, "repaired": repaired}
