"""
Internal-Transfer Detector

A transaction is an internal transfer when both the creditor name and the
debtor name in the raw payload equal the holder name of the syncing account.
Missing names never match. Transfers between accounts held under different
names (e.g. a joint account) are not detected.
"""
import re
from typing import Optional, Tuple

from finsync.common.logging_config import get_logger
from finsync.common.models import (
    Account,
    Transaction,
    INTERNAL_TRANSFER_CATEGORY,
    INTERNAL_TRANSFER_MARKER,
)

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return _WHITESPACE.sub(" ", str(name).strip()).lower()


def _party_names(raw: Optional[dict]) -> Tuple[str, str]:
    """Return (creditor, debtor) names from a DKB-shaped raw payload."""
    if not isinstance(raw, dict):
        return "", ""
    attributes = raw.get('attributes')
    if not isinstance(attributes, dict):
        return "", ""
    creditor = attributes.get('creditor') or {}
    debtor = attributes.get('debtor') or {}
    creditor_name = creditor.get('name') if isinstance(creditor, dict) else None
    debtor_name = debtor.get('name') if isinstance(debtor, dict) else None
    return normalize_name(creditor_name), normalize_name(debtor_name)


def is_internal_transfer(tx: Transaction, account: Account) -> bool:
    """
    Check the transaction against the account holder and tag it when it matches.

    Tagging sets category "internal-transfer" and the raw marker flag.
    """
    holder = normalize_name(account.holder_name)
    if not holder:
        return False

    creditor, debtor = _party_names(tx.raw)
    if not creditor or not debtor:
        return False

    if creditor != holder or debtor != holder:
        return False

    tx.category = INTERNAL_TRANSFER_CATEGORY
    tx.raw = {**(tx.raw or {}), INTERNAL_TRANSFER_MARKER: True}
    logger.debug("Internal transfer tagged.", transaction_id=tx.id, account_id=account.id)
    return True
