from typing import Optional

from fastapi import APIRouter, Depends, Query

from finsync.api.state import AppState, get_app_state
from finsync.core.classifier import categorization_coverage
from finsync.core.queries import TransactionFilters, filter_transactions
from finsync.core.recurring import detect_recurring

router = APIRouter()


def transaction_filters(
    account_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    category: Optional[str] = None,
    direction: Optional[str] = Query(default=None, pattern="^(debit|credit)$"),
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    search: Optional[str] = None,
    exclude_internal_transfers: bool = False,
) -> TransactionFilters:
    return TransactionFilters(
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        category=category,
        direction=direction,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        exclude_internal_transfers=exclude_internal_transfers,
    )


@router.get("")
def get_transactions(
    filters: TransactionFilters = Depends(transaction_filters),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    state: AppState = Depends(get_app_state),
):
    transactions = filter_transactions(state.store.read().transactions, filters)
    return {
        "total": len(transactions),
        "items": [t.to_dict() for t in transactions[offset:offset + limit]],
    }


@router.get("/recurring")
def get_recurring(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    transactions = filter_transactions(state.store.read().transactions, filters)
    return [group.to_dict() for group in detect_recurring(transactions)]


@router.get("/coverage")
def get_coverage(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return categorization_coverage(filter_transactions(state.store.read().transactions, filters))
