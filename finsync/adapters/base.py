"""
Bank Adapter contract.

Each institution implements BankAdapter and maps its native payloads to
the unified schema in finsync.common.models.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from finsync.common.models import Account, Balance, Transaction


@dataclass(frozen=True)
class BankCredentials:
    """
    Opaque session credentials handed to the adapter as-is.

    The values are excluded from repr() so they never end up in logs.
    """
    cookie: str = field(repr=False)
    xsrf_token: Optional[str] = field(default=None, repr=False)


def filter_since(transactions: List[Transaction], since: Optional[datetime]) -> List[Transaction]:
    """
    Keep transactions whose date or booking date falls on or after the
    calendar day of `since`. Day granularity means the watermark day is
    fetched again; deduplication absorbs the overlap.
    """
    if since is None:
        return transactions
    cutoff = since.date().isoformat()
    return [
        t for t in transactions
        if t.date[:10] >= cutoff or (t.booking_date and t.booking_date[:10] >= cutoff)
    ]


class BankAdapter(ABC):
    """
    Abstract Base Class for all institution adapters.
    """
    institution_id: str = ""
    institution_name: str = ""

    @abstractmethod
    def fetch_accounts(self, credentials: BankCredentials) -> List[Account]:
        """Return every account visible with these credentials."""
        raise NotImplementedError

    @abstractmethod
    def fetch_transactions(
        self,
        account_id: str,
        credentials: BankCredentials,
        since: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Return all transactions of the account, optionally post-filtered by `since`."""
        raise NotImplementedError

    @abstractmethod
    def fetch_balances(self, account_id: str, credentials: BankCredentials) -> Balance:
        """Return the account's current balance observation."""
        raise NotImplementedError
