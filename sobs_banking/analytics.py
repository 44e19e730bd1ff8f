"""
Spending Analytics Module

Read-only aggregation of an account's transaction records over a period:
spending by category, income vs. spending totals, average daily spend and
time buckets for charts. Records are final once readable, so a summary never
needs to be invalidated by later edits.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
import calendar

from .currency import Currency, Money
from .ledger import LedgerStore
from .recorder import TransactionRecord


class AnalyticsPeriod(Enum):
    """Analysis windows"""
    WEEK = "week"    # Last 7 days
    MONTH = "month"  # Since the first of the current month
    YEAR = "year"    # Since January 1st

    @property
    def average_days(self) -> int:
        """Divisor used for the average daily spend"""
        return {"week": 7, "month": 30, "year": 365}[self.value]


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    amount: Money


@dataclass(frozen=True)
class TimeBucket:
    """Debits in [start, end)"""
    label: str
    start: datetime
    end: datetime
    spent: Money


@dataclass(frozen=True)
class SpendingSummary:
    account_number: str
    period: AnalyticsPeriod
    start: datetime
    end: datetime
    total_spent: Money
    total_income: Money
    average_daily: Money
    by_category: List[CategoryTotal]
    buckets: List[TimeBucket]
    transaction_count: int

    @property
    def net(self) -> Money:
        return self.total_income - self.total_spent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_number": self.account_number,
            "period": self.period.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "currency": self.total_spent.currency.code,
            "by_category": [
                {"category": c.category, "amount": str(c.amount.amount)} for c in self.by_category
            ],
            "buckets": [
                {"label": b.label, "value": str(b.spent.amount)} for b in self.buckets
            ],
            "insights": {
                "total_spent": str(self.total_spent.amount),
                "total_income": str(self.total_income.amount),
                "net": str(self.net.amount),
                "avg_daily": str(self.average_daily.amount),
                "transaction_count": self.transaction_count,
            },
        }


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def period_bounds(period: AnalyticsPeriod, now: datetime) -> Tuple[datetime, datetime]:
    """Inclusive start and exclusive end of the period containing ``now``"""
    today = _midnight(now)
    end = today + timedelta(days=1)
    if period == AnalyticsPeriod.WEEK:
        return today - timedelta(days=6), end
    if period == AnalyticsPeriod.MONTH:
        return today.replace(day=1), end
    return today.replace(month=1, day=1), end


def _bucket_ranges(period: AnalyticsPeriod, now: datetime) -> List[Tuple[str, datetime, datetime]]:
    today = _midnight(now)
    if period == AnalyticsPeriod.WEEK:
        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        return [(day.strftime("%a"), day, day + timedelta(days=1)) for day in days]

    if period == AnalyticsPeriod.MONTH:
        first = today.replace(day=1)
        days_in_month = calendar.monthrange(first.year, first.month)[1]
        month_end = first + timedelta(days=days_in_month)
        ranges = []
        week = 0
        start = first
        while start < month_end:
            week += 1
            end = min(start + timedelta(days=7), month_end)
            ranges.append((f"Week {week}", start, end))
            start = end
        return ranges

    ranges = []
    for month in range(1, 13):
        start = today.replace(month=month, day=1)
        if month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=month + 1)
        ranges.append((calendar.month_abbr[month], start, end))
    return ranges


class AnalyticsEngine:
    """Aggregates ledger history for the analytics screen"""

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    def summarize(
        self,
        account_number: str,
        period: AnalyticsPeriod = AnalyticsPeriod.MONTH,
        now: Optional[datetime] = None
    ) -> SpendingSummary:
        """
        Summarize one account's activity for a period

        Args:
            account_number: Account to analyse
            period: Week, month or year
            now: Reference time (UTC); defaults to the current time

        Returns:
            SpendingSummary with totals, categories and chart buckets
        """
        now = now or datetime.now(timezone.utc)
        currency = self.ledger.get_balance(account_number).currency
        start, end = period_bounds(period, now)
        records = self.ledger.get_history(account_number, start=start)
        records = [r for r in records if r.timestamp < end]

        zero = Money.zero(currency)
        total_spent = zero
        total_income = zero
        by_category: Dict[str, Money] = {}

        for record in records:
            if record.is_debit:
                total_spent = total_spent + record.amount
                by_category[record.category] = by_category.get(record.category, zero) + record.amount
            else:
                total_income = total_income + record.amount

        categories = [CategoryTotal(category, amount) for category, amount in by_category.items()]
        categories.sort(key=lambda c: (-c.amount.amount, c.category))

        return SpendingSummary(
            account_number=account_number,
            period=period,
            start=start,
            end=end,
            total_spent=total_spent,
            total_income=total_income,
            average_daily=Money(total_spent.amount / Decimal(period.average_days), currency),
            by_category=categories,
            buckets=self._buckets(period, now, records, currency),
            transaction_count=len(records)
        )

    def _buckets(
        self,
        period: AnalyticsPeriod,
        now: datetime,
        records: List[TransactionRecord],
        currency: Currency
    ) -> List[TimeBucket]:
        buckets = []
        for label, start, end in _bucket_ranges(period, now):
            spent = sum(
                (r.amount.amount for r in records if r.is_debit and start <= r.timestamp < end),
                Decimal('0')
            )
            buckets.append(TimeBucket(label=label, start=start, end=end, spent=Money(spent, currency)))
        return buckets
