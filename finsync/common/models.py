"""
Unified Schema

Institution-agnostic Account / Transaction / Balance / SyncMetadata records.
Every adapter and CSV parser emits these shapes; the ledger persists them
through to_dict()/from_dict().
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ACCOUNT_TYPES = ('checking', 'savings', 'credit', 'investment')
DIRECTIONS = ('debit', 'credit')
SYNC_STATUSES = ('success', 'error', 'partial')

INTERNAL_TRANSFER_CATEGORY = 'internal-transfer'
INTERNAL_TRANSFER_MARKER = '__internalTransfer'


@dataclass
class Account:
    """
    A bank account as seen by one institution.

    `id` is the synthetic key "<institution>_<external_id>".
    """
    id: str
    external_id: str
    institution_id: str
    name: str
    type: str = 'checking'
    currency: str = 'EUR'
    iban: Optional[str] = None
    holder_name: Optional[str] = None
    last_synced_at: Optional[str] = None  # ISO-8601 timestamp

    def __post_init__(self):
        if self.type not in ACCOUNT_TYPES:
            raise ValueError(f"Invalid account type: {self.type}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'external_id': self.external_id,
            'institution_id': self.institution_id,
            'name': self.name,
            'type': self.type,
            'currency': self.currency,
            'iban': self.iban,
            'holder_name': self.holder_name,
            'last_synced_at': self.last_synced_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})


@dataclass
class Transaction:
    """
    Canonical representation of a bank transaction.

    amount is signed: negative = debit (money out), positive = credit.
    The id is a content hash of (account_id, date, amount, description,
    counterparty); see finsync.core.hashing.
    """
    id: str
    account_id: str
    date: str  # YYYY-MM-DD
    amount: float
    description: str
    counterparty: str = ''
    currency: str = 'EUR'
    booking_date: Optional[str] = None
    category: Optional[str] = None
    direction: str = ''
    raw: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.direction:
            self.direction = 'debit' if self.amount < 0 else 'credit'
        if self.direction not in DIRECTIONS:
            raise ValueError(f"Invalid transaction direction: {self.direction}")

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    @property
    def is_internal_transfer(self) -> bool:
        return bool(self.raw and self.raw.get(INTERNAL_TRANSFER_MARKER))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'account_id': self.account_id,
            'date': self.date,
            'booking_date': self.booking_date,
            'amount': self.amount,
            'currency': self.currency,
            'description': self.description,
            'counterparty': self.counterparty,
            'category': self.category,
            'direction': self.direction,
            'raw': self.raw,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})


@dataclass
class Balance:
    """One balance observation. Balances form an append-only time series."""
    account_id: str
    amount: float
    currency: str
    fetched_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'amount': self.amount,
            'currency': self.currency,
            'fetched_at': self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Balance':
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})


@dataclass
class SyncMetadata:
    """Audit record for a single sync (or import) attempt."""
    institution_id: str
    last_sync_at: str
    accounts_synced: int = 0
    transactions_fetched: int = 0
    new_transactions: int = 0
    status: str = 'success'
    error: Optional[str] = None

    def __post_init__(self):
        if self.status not in SYNC_STATUSES:
            raise ValueError(f"Invalid sync status: {self.status}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'institution_id': self.institution_id,
            'last_sync_at': self.last_sync_at,
            'accounts_synced': self.accounts_synced,
            'transactions_fetched': self.transactions_fetched,
            'new_transactions': self.new_transactions,
            'status': self.status,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncMetadata':
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})


@dataclass
class Ledger:
    """Aggregate persisted state."""
    accounts: List[Account] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    balances: List[Balance] = field(default_factory=list)
    sync_history: List[SyncMetadata] = field(default_factory=list)

    def get_account(self, account_id: str) -> Optional[Account]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def transaction_ids(self) -> set:
        return {t.id for t in self.transactions}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'accounts': [a.to_dict() for a in self.accounts],
            'transactions': [t.to_dict() for t in self.transactions],
            'balances': [b.to_dict() for b in self.balances],
            'sync_history': [s.to_dict() for s in self.sync_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Ledger':
        return cls(
            accounts=[Account.from_dict(a) for a in data.get('accounts', [])],
            transactions=[Transaction.from_dict(t) for t in data.get('transactions', [])],
            balances=[Balance.from_dict(b) for b in data.get('balances', [])],
            sync_history=[SyncMetadata.from_dict(s) for s in data.get('sync_history', [])],
        )
