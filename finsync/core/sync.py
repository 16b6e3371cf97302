"""
Sync Orchestrator

Runs one sync pass for an institution:

    Started -> FetchingAccounts -> per account {FetchingBalance ->
    FetchingTransactions -> Tagging -> Deduplicating -> Persisting}
    -> Completed | Failed

The ledger is written after every account, so an adapter error part way
through keeps what was already persisted. Exactly one SyncMetadata entry
is appended per attempt and no exception escapes sync().
"""
import dataclasses
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

from finsync.adapters.base import BankAdapter, BankCredentials
from finsync.common.logging_config import get_logger
from finsync.common.models import Account, Ledger, SyncMetadata, Transaction
from finsync.core.classifier import classify_transaction
from finsync.core.hashing import hash_transaction
from finsync.core.transfers import is_internal_transfer

logger = get_logger(__name__)


class SyncState(str, Enum):
    STARTED = "Started"
    FETCHING_ACCOUNTS = "FetchingAccounts"
    FETCHING_BALANCE = "FetchingBalance"
    FETCHING_TRANSACTIONS = "FetchingTransactions"
    TAGGING = "Tagging"
    DEDUPLICATING = "Deduplicating"
    PERSISTING = "Persisting"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class SyncPass:
    """Per-attempt context: counters and the ids already in the ledger or seen in this pass."""
    institution_id: str
    started_at: str
    seen_ids: Set[str] = field(default_factory=set)
    state: SyncState = SyncState.STARTED
    accounts_synced: int = 0
    transactions_fetched: int = 0
    new_transactions: int = 0

    def to_metadata(self, status: str, error: Optional[str] = None) -> SyncMetadata:
        return SyncMetadata(
            institution_id=self.institution_id,
            last_sync_at=self.started_at,
            accounts_synced=self.accounts_synced,
            transactions_fetched=self.transactions_fetched,
            new_transactions=self.new_transactions,
            status=status,
            error=error,
        )


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def last_successful_sync(ledger: Ledger, institution_id: str) -> Optional[SyncMetadata]:
    successful = [
        s for s in ledger.sync_history
        if s.institution_id == institution_id and s.status == 'success'
    ]
    if not successful:
        return None
    return max(successful, key=lambda s: _parse_timestamp(s.last_sync_at))


def _upsert_account(ledger: Ledger, account: Account, synced_at: str) -> Account:
    updated = dataclasses.replace(account, last_synced_at=synced_at)
    for index, existing in enumerate(ledger.accounts):
        if existing.id == account.id:
            ledger.accounts[index] = updated
            return updated
    ledger.accounts.append(updated)
    return updated


class SyncOrchestrator:
    """
    Single writer for the ledger.

    Passes on one orchestrator are serialized by a lock; the HTTP API may
    receive overlapping sync requests.
    """

    def __init__(self, store, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def _transition(self, sync_pass: SyncPass, state: SyncState, **fields) -> None:
        sync_pass.state = state
        logger.debug(f"Sync state: {state.value}", institution_id=sync_pass.institution_id, **fields)

    def _ingest(self, sync_pass: SyncPass, ledger: Ledger, account: Account,
                transactions: Iterable[Transaction]) -> int:
        """Tag, deduplicate and append. Returns the number of new transactions."""
        transactions = list(transactions)

        self._transition(sync_pass, SyncState.TAGGING, account_id=account.id, count=len(transactions))
        for tx in transactions:
            if not tx.id:
                tx.id = hash_transaction(tx)
            is_internal_transfer(tx, account)
            if not tx.category:
                tx.category = classify_transaction(tx)

        self._transition(sync_pass, SyncState.DEDUPLICATING, account_id=account.id)
        new_count = 0
        for tx in transactions:
            if tx.id in sync_pass.seen_ids:
                continue
            sync_pass.seen_ids.add(tx.id)
            ledger.transactions.append(tx)
            new_count += 1

        self._transition(sync_pass, SyncState.PERSISTING, account_id=account.id, new=new_count)
        self.store.write(ledger)
        return new_count

    def _sync_account(self, sync_pass: SyncPass, ledger: Ledger, adapter: BankAdapter,
                      credentials: BankCredentials, account: Account, since: Optional[datetime]) -> None:
        account = _upsert_account(ledger, account, sync_pass.started_at)

        self._transition(sync_pass, SyncState.FETCHING_BALANCE, account_id=account.id)
        balance = adapter.fetch_balances(account.id, credentials)
        ledger.balances.append(balance)

        self._transition(sync_pass, SyncState.FETCHING_TRANSACTIONS, account_id=account.id)
        transactions = adapter.fetch_transactions(account.id, credentials, since=since)
        sync_pass.transactions_fetched += len(transactions)

        new_count = self._ingest(sync_pass, ledger, account, transactions)
        sync_pass.new_transactions += new_count
        sync_pass.accounts_synced += 1

        logger.info(
            "Account synced.",
            institution_id=sync_pass.institution_id,
            account_id=account.id,
            fetched=len(transactions),
            new=new_count,
        )

    def _finish(self, ledger: Optional[Ledger], metadata: SyncMetadata) -> SyncMetadata:
        """Append the audit entry. A store failure here is logged, not raised."""
        try:
            if ledger is None:
                ledger = self.store.read()
            ledger.sync_history.append(metadata)
            self.store.write(ledger)
        except Exception as e:
            logger.error(f"Failed to record sync metadata: {e}", exc_info=True, institution_id=metadata.institution_id)
        return metadata

    def sync(self, adapter: BankAdapter, credentials: BankCredentials) -> SyncMetadata:
        with self._lock:
            sync_pass = SyncPass(
                institution_id=adapter.institution_id,
                started_at=self.clock().isoformat(),
            )
            logger.info("Sync started.", institution_id=adapter.institution_id)
            ledger = None

            try:
                ledger = self.store.read()
                sync_pass.seen_ids = ledger.transaction_ids()

                watermark = last_successful_sync(ledger, adapter.institution_id)
                since = _parse_timestamp(watermark.last_sync_at) if watermark else None

                self._transition(sync_pass, SyncState.FETCHING_ACCOUNTS)
                accounts = adapter.fetch_accounts(credentials)

                for account in accounts:
                    self._sync_account(sync_pass, ledger, adapter, credentials, account, since)

                self._transition(sync_pass, SyncState.COMPLETED)
                metadata = sync_pass.to_metadata('success')
                logger.info("Sync completed.", **metadata.to_dict())
            except Exception as e:
                failed_in = sync_pass.state.value
                self._transition(sync_pass, SyncState.FAILED, failed_in=failed_in)
                # Only what was already written survives
                ledger = None
                metadata = sync_pass.to_metadata('error', error=str(e) or e.__class__.__name__)
                logger.error(
                    f"Sync failed during {failed_in}: {e}",
                    exc_info=True,
                    error_type=e.__class__.__name__,
                    **metadata.to_dict(),
                )

            return self._finish(ledger, metadata)

    def import_transactions(self, account: Account, transactions: List[Transaction], source_id: str) -> SyncMetadata:
        """
        Ingest transactions that did not come from an adapter (CSV import).

        Enters the pipeline at Tagging. An account already in the ledger
        keeps its stored attributes.
        """
        with self._lock:
            sync_pass = SyncPass(institution_id=source_id, started_at=self.clock().isoformat())
            sync_pass.transactions_fetched = len(transactions)
            logger.info("Import started.", source_id=source_id, account_id=account.id, count=len(transactions))
            ledger = None

            try:
                ledger = self.store.read()
                sync_pass.seen_ids = ledger.transaction_ids()

                stored = ledger.get_account(account.id)
                target = _upsert_account(ledger, stored or account, sync_pass.started_at)

                sync_pass.new_transactions = self._ingest(sync_pass, ledger, target, transactions)
                sync_pass.accounts_synced = 1

                self._transition(sync_pass, SyncState.COMPLETED)
                metadata = sync_pass.to_metadata('success')
                logger.info("Import completed.", **metadata.to_dict())
            except Exception as e:
                self._transition(sync_pass, SyncState.FAILED)
                # Only what was already written survives
                ledger = None
                metadata = sync_pass.to_metadata('error', error=str(e) or e.__class__.__name__)
                logger.error(f"Import failed: {e}", exc_info=True, **metadata.to_dict())

            return self._finish(ledger, metadata)
