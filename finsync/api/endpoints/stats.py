from fastapi import APIRouter, Depends

from finsync.api.endpoints.transactions import transaction_filters
from finsync.api.state import AppState, get_app_state
from finsync.core import statistics
from finsync.core.queries import TransactionFilters, dashboard_stats, filter_transactions, total_balance

router = APIRouter()


def _transactions(state: AppState, filters: TransactionFilters):
    return filter_transactions(state.store.read().transactions, filters)


@router.get("/dashboard")
def get_dashboard(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return dashboard_stats(state.store.read(), filters)


@router.get("/cash-flow")
def get_cash_flow(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return statistics.calculate_monthly_cash_flow(_transactions(state, filters))


@router.get("/categories")
def get_categories(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return statistics.calculate_category_breakdown(_transactions(state, filters))


@router.get("/daily-average")
def get_daily_average(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    value = statistics.calculate_daily_average_spend(_transactions(state, filters), filters.start_date, filters.end_date)
    return {"daily_average_spend": value}


@router.get("/volatility")
def get_volatility(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return {"expense_volatility": statistics.calculate_expense_volatility(_transactions(state, filters))}


@router.get("/trend")
def get_trend(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    return {"month_over_month_trend": statistics.calculate_month_over_month_trend(_transactions(state, filters))}


@router.get("/emergency-fund")
def get_emergency_fund(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    ledger = state.store.read()
    balance = total_balance(ledger, filters.account_id)
    transactions = filter_transactions(ledger.transactions, filters)
    return {
        "total_balance": balance,
        "emergency_fund_coverage": statistics.calculate_emergency_fund_coverage(balance, transactions),
    }


@router.get("/spending-mix")
def get_spending_mix(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    transactions = _transactions(state, filters)
    return {
        "recurring_ratio": statistics.calculate_recurring_ratio(transactions),
        "discretionary_ratio": statistics.calculate_discretionary_ratio(transactions),
    }


@router.get("/largest-expense")
def get_largest_expense(filters: TransactionFilters = Depends(transaction_filters), state: AppState = Depends(get_app_state)):
    tx = statistics.find_largest_expense(_transactions(state, filters))
    return tx.to_dict() if tx else None
