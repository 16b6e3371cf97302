from datetime import datetime
from typing import List, Optional

from finsync.adapters.base import BankAdapter, BankCredentials, filter_since
from finsync.adapters.dkb.api import DkbApiClient, INSTITUTION_ID
from finsync.adapters.dkb.mapper import external_account_id, map_account, map_balance, map_transaction
from finsync.common.logging_config import get_logger
from finsync.common.models import Account, Balance, Transaction

logger = get_logger(__name__)


class DkbAdapter(BankAdapter):
    """
    Deutsche Kreditbank adapter.

    Account ids passed in are unified ids ("dkb_<uuid>"); the prefix is
    stripped before calling the API.
    """
    institution_id = INSTITUTION_ID
    institution_name = "Deutsche Kreditbank (DKB)"

    def __init__(self, client: Optional[DkbApiClient] = None):
        self.client = client or DkbApiClient()

    def fetch_accounts(self, credentials: BankCredentials) -> List[Account]:
        accounts = [map_account(raw) for raw in self.client.fetch_accounts(credentials)]
        logger.info("Mapped DKB accounts.", accounts=[a.id for a in accounts])
        return accounts

    def fetch_transactions(
        self,
        account_id: str,
        credentials: BankCredentials,
        since: Optional[datetime] = None,
    ) -> List[Transaction]:
        raw_transactions = self.client.fetch_transactions(external_account_id(account_id), credentials)
        transactions = [map_transaction(raw, account_id) for raw in raw_transactions]
        filtered = filter_since(transactions, since)
        logger.info(
            "Mapped DKB transactions.",
            account_id=account_id,
            fetched=len(transactions),
            kept=len(filtered),
            since=since.isoformat() if since else None,
        )
        return filtered

    def fetch_balances(self, account_id: str, credentials: BankCredentials) -> Balance:
        raw = self.client.fetch_account(external_account_id(account_id), credentials)
        return map_balance(raw, account_id)


__all__ = ['DkbAdapter', 'DkbApiClient']
