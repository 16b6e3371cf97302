"""
DKB payload -> Unified Schema mapping.
"""
from datetime import datetime, timezone
from typing import Optional

from finsync.adapters.dkb.api import DkbAccount, DkbTransaction, INSTITUTION_ID
from finsync.common.models import Account, Balance, Transaction
from finsync.core.hashing import transaction_id

ACCOUNT_ID_PREFIX = f"{INSTITUTION_ID}_"

# German product names used by older accounts
_LEGACY_TYPES = {
    'girokonto': 'checking',
    'tagesgeld': 'savings',
    'kreditkarte': 'credit',
    'depot': 'investment',
}


def map_account_type(product_type: Optional[str]) -> str:
    if not product_type:
        return 'checking'

    if 'checking-account' in product_type:
        return 'checking'
    if 'savings-account' in product_type:
        return 'savings'
    if 'credit-card' in product_type:
        return 'credit'
    if 'depot' in product_type or 'investment' in product_type:
        return 'investment'

    return _LEGACY_TYPES.get(product_type.lower(), 'checking')


def unified_account_id(external_id: str) -> str:
    return f"{ACCOUNT_ID_PREFIX}{external_id}"


def external_account_id(account_id: str) -> str:
    if account_id.startswith(ACCOUNT_ID_PREFIX):
        return account_id[len(ACCOUNT_ID_PREFIX):]
    return account_id


def map_account(raw: DkbAccount) -> Account:
    attributes = raw.attributes
    return Account(
        id=unified_account_id(raw.id),
        external_id=raw.id,
        institution_id=INSTITUTION_ID,
        name=attributes.product.display_name,
        type=map_account_type(attributes.product.type),
        currency=attributes.currency_code,
        iban=attributes.iban,
        holder_name=attributes.holder_name,
    )


def map_transaction(raw: DkbTransaction, account_id: str) -> Transaction:
    """
    Value date is the primary date. Counterparty is the creditor for
    debits and the debtor for credits.
    """
    attributes = raw.attributes
    amount = float(attributes.amount.value)
    is_debit = amount < 0

    party = attributes.creditor if is_debit else attributes.debtor
    counterparty = (party.name if party else None) or ""
    description = attributes.description or ""

    return Transaction(
        id=transaction_id(account_id, attributes.value_date, amount, description, counterparty),
        account_id=account_id,
        date=attributes.value_date,
        booking_date=attributes.booking_date,
        amount=amount,
        currency=attributes.amount.currency_code,
        description=description,
        counterparty=counterparty,
        direction='debit' if is_debit else 'credit',
        raw=raw.model_dump(mode='json', by_alias=True, exclude_none=True),
    )


def map_balance(raw: DkbAccount, account_id: str, fetched_at: Optional[str] = None) -> Balance:
    balance = raw.attributes.balance
    return Balance(
        account_id=account_id,
        amount=float(balance.value),
        currency=balance.currency_code,
        fetched_at=fetched_at or datetime.now(timezone.utc).isoformat(),
    )
