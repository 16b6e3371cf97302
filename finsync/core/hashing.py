"""
Transaction identity.

Two transactions with equal (account_id, date, amount, description,
counterparty) are the same transaction, whatever else differs.
"""
import hashlib
from typing import Union

from finsync.common.models import Transaction


def canonical_amount(amount: Union[int, float]) -> str:
    """
    Render an amount in its shortest round-trip form.

    Integral values drop the fractional part so that -55.0 and -55 hash alike:
        12.99 -> "12.99", -55.0 -> "-55", 0.1 + 0.2 -> "0.30000000000000004"
    """
    value = float(amount)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def transaction_id(account_id: str, date: str, amount: Union[int, float], description: str, counterparty: str) -> str:
    """SHA-256 over the pipe-joined identity fields."""
    payload = "|".join([
        account_id,
        date,
        canonical_amount(amount),
        description or "",
        counterparty or "",
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def hash_transaction(tx: Transaction) -> str:
    return transaction_id(tx.account_id, tx.date, tx.amount, tx.description, tx.counterparty)
