"""
Statistics Engine

Read-only aggregations over persisted transactions. Functions never mutate
their input and perform no I/O. Monetary and percentage results are
rounded to 2 decimals, halves away from zero.
"""
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from finsync.common.models import Transaction
from finsync.common.numbers import round_half_away_from_zero
from finsync.core.classifier import DINING, ENTERTAINMENT, SHOPPING, classify

FRAME_COLUMNS = ['date', 'month', 'amount', 'description', 'counterparty', 'category', 'direction']

RECURRING_MIN_MONTHS = 2
RECURRING_MAX_DEVIATION = 0.20
DISCRETIONARY_CATEGORIES = (ENTERTAINMENT, DINING, SHOPPING)


def _to_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    rows = [
        {
            'date': t.date[:10],
            'month': t.date[:7],
            'amount': float(t.amount),
            'description': t.description or '',
            'counterparty': t.counterparty or '',
            'category': t.category,
            'direction': t.direction,
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _monthly_totals(df: pd.DataFrame) -> pd.DataFrame:
    """One row per calendar month: month, income, expenses (positive)."""
    if df.empty:
        return pd.DataFrame(columns=['month', 'income', 'expenses'])

    totals = pd.DataFrame({
        'month': df['month'],
        'income': df['amount'].where(df['amount'] > 0, 0.0),
        'expenses': (-df['amount']).where(df['amount'] < 0, 0.0),
    })
    return totals.groupby('month', sort=True).sum().reset_index()


def _population_std(values: pd.Series) -> float:
    if len(values) < 2:
        return 0.0
    return float(values.astype(float).std(ddof=0))


def calculate_monthly_cash_flow(transactions: Sequence[Transaction]) -> List[Dict]:
    """Income, expenses and net per month, oldest month first."""
    monthly = _monthly_totals(_to_frame(transactions))
    return [
        {
            'month': row.month,
            'income': round_half_away_from_zero(row.income),
            'expenses': round_half_away_from_zero(row.expenses),
            'net': round_half_away_from_zero(row.income - row.expenses),
        }
        for row in monthly.itertuples(index=False)
    ]


def calculate_category_breakdown(transactions: Sequence[Transaction]) -> List[Dict]:
    """Debit totals per category with their share of all debits, largest first."""
    df = _to_frame(transactions)
    debits = df[df['amount'] < 0].copy()
    if debits.empty:
        return []

    debits['category'] = [
        category if category else classify(description, counterparty, direction)
        for category, description, counterparty, direction in zip(
            debits['category'], debits['description'], debits['counterparty'], debits['direction']
        )
    ]
    debits['abs_amount'] = debits['amount'].abs()

    grouped = debits.groupby('category', sort=False).agg(
        amount=('abs_amount', 'sum'),
        tx_count=('abs_amount', 'size'),
    ).reset_index()
    total = grouped['amount'].sum()
    grouped = grouped.sort_values('amount', ascending=False, kind='mergesort')

    return [
        {
            'category': row.category,
            'amount': round_half_away_from_zero(row.amount),
            'percentage': round_half_away_from_zero(row.amount / total * 100) if total > 0 else 0.0,
            'count': int(row.tx_count),
        }
        for row in grouped.itertuples(index=False)
    ]


def calculate_daily_average_spend(
    transactions: Sequence[Transaction],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> float:
    """
    Total debits divided by the number of days between the range endpoints
    (at least 1). Missing endpoints come from the oldest/newest debit.
    """
    df = _to_frame(transactions)
    debits = df[df['amount'] < 0]
    if start_date:
        debits = debits[debits['date'] >= start_date[:10]]
    if end_date:
        debits = debits[debits['date'] <= end_date[:10]]

    if debits.empty:
        return 0.0

    start = date.fromisoformat(start_date[:10]) if start_date else date.fromisoformat(debits['date'].min())
    end = date.fromisoformat(end_date[:10]) if end_date else date.fromisoformat(debits['date'].max())
    days = max((end - start).days, 1)

    total = float(debits['amount'].abs().sum())
    return round_half_away_from_zero(total / days)


def calculate_expense_volatility(transactions: Sequence[Transaction]) -> float:
    """Population standard deviation of monthly expenses; 0 below two months."""
    monthly = _monthly_totals(_to_frame(transactions))
    return round_half_away_from_zero(_population_std(monthly['expenses']))


def calculate_month_over_month_trend(transactions: Sequence[Transaction]) -> float:
    """Percent change of expenses from the previous to the latest month."""
    monthly = _monthly_totals(_to_frame(transactions))
    if len(monthly) < 2:
        return 0.0

    current = float(monthly['expenses'].iloc[-1])
    previous = float(monthly['expenses'].iloc[-2])
    if previous == 0:
        return 0.0
    return round_half_away_from_zero((current - previous) / previous * 100)


def calculate_emergency_fund_coverage(total_balance: float, transactions: Sequence[Transaction]) -> float:
    """How many months of average expenses the balance covers."""
    monthly = _monthly_totals(_to_frame(transactions))
    if monthly.empty:
        return 0.0

    average_expenses = float(monthly['expenses'].mean())
    if average_expenses == 0:
        return 0.0
    return round_half_away_from_zero(total_balance / average_expenses)


def calculate_savings_rate(transactions: Sequence[Transaction]) -> float:
    """(income - expenses) / income * 100 over the whole period."""
    df = _to_frame(transactions)
    income = float(df.loc[df['amount'] > 0, 'amount'].sum())
    expenses = float(df.loc[df['amount'] < 0, 'amount'].abs().sum())
    if income <= 0:
        return 0.0
    return round_half_away_from_zero((income - expenses) / income * 100)


def calculate_income_stability(transactions: Sequence[Transaction]) -> float:
    """Population standard deviation of monthly income."""
    monthly = _monthly_totals(_to_frame(transactions))
    return round_half_away_from_zero(_population_std(monthly['income']))


def calculate_recurring_ratio(transactions: Sequence[Transaction]) -> float:
    """
    Share of expenses (percent) going to counterparties paid in at least
    two months whose monthly totals all stay within 20% of their mean.
    """
    df = _to_frame(transactions)
    debits = df[df['amount'] < 0]
    total_expenses = float(debits['amount'].abs().sum())
    if total_expenses <= 0:
        return 0.0

    debits = debits.assign(
        key=debits['counterparty'].str.strip().str.lower(),
        abs_amount=debits['amount'].abs(),
    )
    debits = debits[debits['key'] != '']
    monthly = debits.groupby(['key', 'month'])['abs_amount'].sum()

    recurring = 0.0
    for _, amounts in monthly.groupby(level='key'):
        if len(amounts) < RECURRING_MIN_MONTHS:
            continue
        mean = amounts.mean()
        if ((amounts - mean).abs() / mean).max() <= RECURRING_MAX_DEVIATION:
            recurring += float(amounts.sum())

    return round_half_away_from_zero(recurring / total_expenses * 100)


def calculate_discretionary_ratio(transactions: Sequence[Transaction]) -> float:
    """Share of expenses (percent) in Entertainment, Dining and Shopping."""
    df = _to_frame(transactions)
    debits = df[df['amount'] < 0]
    total_expenses = float(debits['amount'].abs().sum())
    if total_expenses <= 0:
        return 0.0

    categories = [
        category if category else classify(description, counterparty, direction)
        for category, description, counterparty, direction in zip(
            debits['category'], debits['description'], debits['counterparty'], debits['direction']
        )
    ]
    discretionary = float(debits.loc[[c in DISCRETIONARY_CATEGORIES for c in categories], 'amount'].abs().sum())
    return round_half_away_from_zero(discretionary / total_expenses * 100)


def find_largest_expense(transactions: Sequence[Transaction]) -> Optional[Transaction]:
    expenses = [t for t in transactions if t.amount < 0]
    if not expenses:
        return None
    return min(expenses, key=lambda t: t.amount)
