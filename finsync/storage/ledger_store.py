"""
Ledger persistence.

Stores expose read() -> Ledger and write(Ledger). The orchestrator is the
only writer; each write replaces the whole snapshot.
"""
import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

from finsync.common.logging_config import get_logger
from finsync.common.models import Ledger

logger = get_logger(__name__)

DEFAULT_LEDGER_PATH = Path("data") / "ledger.json"


class LedgerStore(Protocol):
    def read(self) -> Ledger:
        ...

    def write(self, ledger: Ledger) -> None:
        ...


class MemoryLedgerStore:
    """Keeps a deep copy of the last written ledger. Used in tests and demos."""

    def __init__(self, ledger: Optional[Ledger] = None):
        self._ledger = copy.deepcopy(ledger) if ledger else Ledger()
        self._lock = threading.Lock()

    def read(self) -> Ledger:
        with self._lock:
            return copy.deepcopy(self._ledger)

    def write(self, ledger: Ledger) -> None:
        with self._lock:
            self._ledger = copy.deepcopy(ledger)


class JsonLedgerStore:
    """
    Ledger stored as one JSON document.

    Writes go to a temporary file in the same directory followed by
    os.replace, so readers never see a half-written ledger.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_LEDGER_PATH):
        self.path = Path(path)

    def read(self) -> Ledger:
        if not self.path.exists():
            logger.debug("Ledger file not found, starting empty.", path=str(self.path))
            return Ledger()

        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return Ledger.from_dict(data)

    def write(self, ledger: Ledger) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(ledger.to_dict(), f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(
            "Ledger written.",
            path=str(self.path),
            accounts=len(ledger.accounts),
            transactions=len(ledger.transactions),
        )
