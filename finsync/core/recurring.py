"""
Recurring-Transaction Detector

Finds monthly charges (subscriptions, rent) by clustering each counterparty's
history on amount and checking the spacing between payments. Only monthly
cadence is recognised; weekly, biweekly and annual recurrences are not.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List

from finsync.common.logging_config import get_logger
from finsync.common.models import Transaction
from finsync.common.numbers import round_half_away_from_zero
from finsync.core.classifier import classify

logger = get_logger(__name__)

MIN_OCCURRENCES = 3
AMOUNT_TOLERANCE = 0.10
MIN_INTERVAL_DAYS = 28
MAX_INTERVAL_DAYS = 32
MIN_REGULAR_INTERVALS = 2


@dataclass
class RecurringGroup:
    counterparty: str
    transactions: List[Transaction]
    average_amount: float
    average_interval: float
    category: str

    def to_dict(self) -> dict:
        return {
            'counterparty': self.counterparty,
            'transactions': [t.to_dict() for t in self.transactions],
            'count': len(self.transactions),
            'average_amount': self.average_amount,
            'average_interval': self.average_interval,
            'category': self.category,
        }


@dataclass
class _AmountCluster:
    members: List[Transaction] = field(default_factory=list)
    total: float = 0.0

    @property
    def mean(self) -> float:
        return self.total / len(self.members) if self.members else 0.0

    def accepts(self, amount: float) -> bool:
        mean = self.mean
        if mean == 0:
            return amount == 0
        return abs(amount - mean) / mean <= AMOUNT_TOLERANCE

    def add(self, tx: Transaction) -> None:
        self.members.append(tx)
        self.total += abs(tx.amount)


def _parse_date(value: str) -> date:
    return date.fromisoformat(value[:10])


def _cluster_by_amount(transactions: List[Transaction]) -> List[_AmountCluster]:
    """
    Greedy single pass: each transaction joins the first cluster whose running
    mean is within tolerance. The mean drifts as members are added, so the
    input must already be in date order.
    """
    clusters: List[_AmountCluster] = []
    for tx in transactions:
        amount = abs(tx.amount)
        for cluster in clusters:
            if cluster.accepts(amount):
                cluster.add(tx)
                break
        else:
            cluster = _AmountCluster()
            cluster.add(tx)
            clusters.append(cluster)
    return clusters


def _regular_intervals(transactions: List[Transaction]) -> List[int]:
    intervals = []
    for previous, current in zip(transactions, transactions[1:]):
        days = (_parse_date(current.date) - _parse_date(previous.date)).days
        if MIN_INTERVAL_DAYS <= days <= MAX_INTERVAL_DAYS:
            intervals.append(days)
    return intervals


def detect_recurring(transactions: List[Transaction]) -> List[RecurringGroup]:
    """Return monthly recurring groups, most frequent first."""
    by_counterparty: Dict[str, List[Transaction]] = defaultdict(list)
    for tx in transactions:
        key = (tx.counterparty or "").strip().lower()
        if key:
            by_counterparty[key].append(tx)

    groups: List[RecurringGroup] = []
    for key, txs in by_counterparty.items():
        if len(txs) < MIN_OCCURRENCES:
            continue

        ordered = sorted(txs, key=lambda t: t.date)
        for cluster in _cluster_by_amount(ordered):
            members = cluster.members
            if len(members) < MIN_OCCURRENCES:
                continue

            intervals = _regular_intervals(members)
            if len(intervals) < MIN_REGULAR_INTERVALS:
                continue

            first = members[0]
            groups.append(RecurringGroup(
                counterparty=first.counterparty,
                transactions=members,
                average_amount=round_half_away_from_zero(sum(abs(t.amount) for t in members) / len(members)),
                average_interval=round_half_away_from_zero(sum(intervals) / len(intervals)),
                category=classify(first.description, first.counterparty, first.direction),
            ))

    groups.sort(key=lambda g: len(g.transactions), reverse=True)
    logger.debug("Recurring detection finished.", groups=len(groups), transactions=len(transactions))
    return groups
