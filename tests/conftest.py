import os

# Keep the API module from reading a local config or writing log files on import
os.environ.setdefault("FINSYNC_CONFIG", os.path.join(os.path.dirname(__file__), "no-such-config.yaml"))
os.environ.setdefault("FINSYNC_LOG_FILE", "")

import pytest

from finsync.common.models import Account, Transaction
from finsync.core.hashing import transaction_id


def make_tx(date, amount, description="", counterparty="", account_id="dkb_acc1", **kwargs):
    """Transaction with its content-hash id."""
    return Transaction(
        id=transaction_id(account_id, date, amount, description, counterparty),
        account_id=account_id,
        date=date,
        amount=amount,
        description=description,
        counterparty=counterparty,
        **kwargs,
    )


@pytest.fixture
def account():
    return Account(
        id="dkb_acc1",
        external_id="acc1",
        institution_id="dkb",
        name="Girokonto",
        iban="DE02120300000000202051",
        holder_name="Max Mustermann",
    )
