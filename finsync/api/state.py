import threading
from typing import Callable, Optional

from finsync.adapters import get_adapter
from finsync.adapters.base import BankAdapter
from finsync.common.config import Settings, load_settings
from finsync.core.sync import SyncOrchestrator
from finsync.storage import JsonLedgerStore


class AppState:
    """Process-wide objects shared by the endpoints: one store, one orchestrator."""

    def __init__(self, settings: Optional[Settings] = None, store=None,
                 adapter_factory: Callable[[str], BankAdapter] = get_adapter):
        self.settings = settings or load_settings()
        self.store = store or JsonLedgerStore(self.settings.ledger_path)
        self.orchestrator = SyncOrchestrator(self.store)
        self.adapter_factory = adapter_factory


_state: Optional[AppState] = None
_state_lock = threading.Lock()


def get_app_state() -> AppState:
    """
    FastAPI dependency. Builds the state from configuration on first use.
    Tests replace it through app.dependency_overrides.
    """
    global _state
    with _state_lock:
        if _state is None:
            _state = AppState()
        return _state
