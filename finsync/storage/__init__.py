from .ledger_store import DEFAULT_LEDGER_PATH, JsonLedgerStore, LedgerStore, MemoryLedgerStore

__all__ = ['LedgerStore', 'MemoryLedgerStore', 'JsonLedgerStore', 'DEFAULT_LEDGER_PATH']
