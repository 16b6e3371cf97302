from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from finsync.api.state import AppState, get_app_state
from finsync.core.queries import balance_history, latest_balances, total_balance

router = APIRouter()


@router.get("")
def get_accounts(state: AppState = Depends(get_app_state)):
    ledger = state.store.read()
    latest = latest_balances(ledger)
    result = []
    for account in ledger.accounts:
        entry = account.to_dict()
        balance = latest.get(account.id)
        entry['balance'] = balance.to_dict() if balance else None
        result.append(entry)
    return result


@router.get("/total-balance")
def get_total_balance(state: AppState = Depends(get_app_state)):
    return {"total_balance": total_balance(state.store.read())}


@router.get("/balances")
def get_balance_history(account_id: Optional[str] = None, state: AppState = Depends(get_app_state)):
    return [b.to_dict() for b in balance_history(state.store.read(), account_id)]


@router.get("/{account_id}")
def get_account(account_id: str, state: AppState = Depends(get_app_state)):
    account = state.store.read().get_account(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Account not found: {account_id}")
    return account.to_dict()
