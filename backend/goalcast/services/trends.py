from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .. import models
from ..config import FINANCIAL_LOOKBACK_DAYS, FINANCIAL_WINDOW_MONTHS
from ..schemas.forecasting import FinancialTrends, TransactionEvent
from .timeseries import aggregate_by_month, chronological_values, half_split_trend, round_half_up

TREND_UP = 1.15
TREND_DOWN = 0.85


async def fetch_recent_transactions(
    db: AsyncSession,
    user_id: str,
    today: date,
    lookback_days: int = FINANCIAL_LOOKBACK_DAYS,
) -> List[TransactionEvent]:
    """Fetch the user's income and expense transactions for the lookback window."""
    cutoff_date = today - timedelta(days=lookback_days)
    stmt = (
        select(
            models.Transaction.transaction_date,
            models.Transaction.amount,
            models.Transaction.type,
        )
        .where(
            models.Transaction.user_id == user_id,
            models.Transaction.transaction_date >= cutoff_date,
        )
        .order_by(models.Transaction.transaction_date.asc())
    )
    result = await db.execute(stmt)
    return [
        TransactionEvent(date=row.transaction_date, amount=row.amount, type=row.type)
        for row in result.all()
    ]


def _monthly_trend(transactions: List[TransactionEvent]) -> str:
    """Direction of a single transaction type; stable below two monthly buckets."""
    if len(transactions) < 2:
        return "stable"
    return half_split_trend(
        chronological_values(aggregate_by_month(transactions)), TREND_UP, TREND_DOWN
    )


def calculate_financial_trends(
    transactions: Iterable[TransactionEvent],
    window_months: int = FINANCIAL_WINDOW_MONTHS,
) -> FinancialTrends:
    """Monthly run-rate of income, expenses and surplus over a fixed window.

    Totals are divided by the window length rather than by the number of
    months that actually have transactions, so sparse months count as zero.
    """
    by_type: Dict[str, List[TransactionEvent]] = defaultdict(list)
    for txn in transactions:
        by_type[(txn.type or "").lower()].append(txn)

    income = by_type.get("income", [])
    expenses = by_type.get("expense", [])

    monthly_income = sum(t.amount for t in income) / window_months
    monthly_expenses = sum(t.amount for t in expenses) / window_months

    return FinancialTrends(
        monthly_income=round_half_up(monthly_income),
        monthly_expenses=round_half_up(monthly_expenses),
        monthly_surplus=round_half_up(monthly_income - monthly_expenses),
        income_trend=_monthly_trend(income),
        expense_trend=_monthly_trend(expenses),
    )
