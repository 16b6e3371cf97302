"""
Read-side queries over a ledger snapshot: transaction filters, latest
balances and the dashboard statistics bundle.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from finsync.common.models import Balance, Ledger, Transaction
from finsync.common.numbers import round_half_away_from_zero
from finsync.core import statistics


@dataclass
class TransactionFilters:
    account_id: Optional[str] = None
    start_date: Optional[str] = None  # inclusive, YYYY-MM-DD
    end_date: Optional[str] = None  # inclusive, YYYY-MM-DD
    category: Optional[str] = None
    direction: Optional[str] = None
    min_amount: Optional[float] = None  # on abs(amount)
    max_amount: Optional[float] = None
    search: Optional[str] = None
    exclude_internal_transfers: bool = False


def filter_transactions(transactions: List[Transaction], filters: Optional[TransactionFilters] = None) -> List[Transaction]:
    """Apply filters and return newest first."""
    result = list(transactions)
    f = filters or TransactionFilters()

    if f.account_id:
        result = [t for t in result if t.account_id == f.account_id]
    if f.start_date:
        result = [t for t in result if t.date[:10] >= f.start_date[:10]]
    if f.end_date:
        result = [t for t in result if t.date[:10] <= f.end_date[:10]]
    if f.category:
        result = [t for t in result if t.category == f.category]
    if f.direction:
        result = [t for t in result if t.direction == f.direction]
    if f.min_amount is not None:
        result = [t for t in result if abs(t.amount) >= f.min_amount]
    if f.max_amount is not None:
        result = [t for t in result if abs(t.amount) <= f.max_amount]
    if f.search:
        query = f.search.lower()
        result = [
            t for t in result
            if query in (t.description or '').lower() or query in (t.counterparty or '').lower()
        ]
    if f.exclude_internal_transfers:
        result = [t for t in result if not t.is_internal_transfer]

    return sorted(result, key=lambda t: t.date, reverse=True)


def latest_balances(ledger: Ledger) -> Dict[str, Balance]:
    latest: Dict[str, Balance] = {}
    for balance in ledger.balances:
        current = latest.get(balance.account_id)
        if current is None or balance.fetched_at > current.fetched_at:
            latest[balance.account_id] = balance
    return latest


def total_balance(ledger: Ledger, account_id: Optional[str] = None) -> float:
    balances = latest_balances(ledger)
    if account_id:
        balances = {k: v for k, v in balances.items() if k == account_id}
    return round_half_away_from_zero(sum(b.amount for b in balances.values()))


def balance_history(ledger: Ledger, account_id: Optional[str] = None) -> List[Balance]:
    balances = [b for b in ledger.balances if not account_id or b.account_id == account_id]
    return sorted(balances, key=lambda b: b.fetched_at)


def dashboard_stats(ledger: Ledger, filters: Optional[TransactionFilters] = None) -> Dict[str, Any]:
    filters = filters or TransactionFilters()
    transactions = filter_transactions(ledger.transactions, filters)
    balance = total_balance(ledger, filters.account_id)

    income = sum(t.amount for t in transactions if t.amount > 0)
    expenses = sum(abs(t.amount) for t in transactions if t.amount < 0)

    return {
        'total_balance': balance,
        'total_income': round_half_away_from_zero(income),
        'total_expenses': round_half_away_from_zero(expenses),
        'savings_rate': statistics.calculate_savings_rate(transactions),
        'monthly_cash_flow': statistics.calculate_monthly_cash_flow(transactions),
        'category_breakdown': statistics.calculate_category_breakdown(transactions),
        'daily_average_spend': statistics.calculate_daily_average_spend(
            transactions, filters.start_date, filters.end_date
        ),
        'expense_volatility': statistics.calculate_expense_volatility(transactions),
        'month_over_month_trend': statistics.calculate_month_over_month_trend(transactions),
        'emergency_fund_coverage': statistics.calculate_emergency_fund_coverage(balance, transactions),
        'income_stability': statistics.calculate_income_stability(transactions),
        'recurring_ratio': statistics.calculate_recurring_ratio(transactions),
        'discretionary_ratio': statistics.calculate_discretionary_ratio(transactions),
        'transaction_count': len(transactions),
    }
