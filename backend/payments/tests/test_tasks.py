import pytest

from payments.ledger import get_miles_balance
from payments.models import WalletPoints
from payments.tasks import reconcile_wallet_balances

pytestmark = pytest.mark.django_db


def test_reconcile_wallet_balances_repairs_only_drifted(rider, other_rider):
    WalletPoints.objects.filter(user=rider).update(points=5)

    result = reconcile_wallet_balances.delay().get()

    assert result == {"checked": 2, "repaired": 1}
    assert get_miles_balance(rider) == 100
    assert get_miles_balance(other_rider) == 100
