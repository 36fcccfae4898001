import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .. import models
from ..config import HISTORY_MONTHS
from ..schemas.forecasting import HistoricalContext, MonthlySummaryRecord, TransactionEvent
from .timeseries import (
    add_months,
    classify_change,
    get_month_key,
    mean,
    population_stddev,
    round_half_up,
)
from .trends import fetch_recent_transactions

logger = logging.getLogger(__name__)

NET_TREND_UP = 1.15
NET_TREND_DOWN = 0.85
NET_TREND_LABELS = ("improving", "declining", "stable")
HIGH_VOLATILITY_RATIO = 0.3


async def fetch_monthly_summaries(
    db: AsyncSession,
    user_id: str,
    limit: int = HISTORY_MONTHS,
) -> List[MonthlySummaryRecord]:
    """Fetch the latest monthly summaries, newest month first."""
    stmt = (
        select(models.MonthlySummary)
        .where(models.MonthlySummary.user_id == user_id)
        .order_by(models.MonthlySummary.month.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [MonthlySummaryRecord.model_validate(row) for row in result.scalars().all()]


def calculate_historical_context(summaries: Sequence[MonthlySummaryRecord]) -> HistoricalContext:
    """Average net, savings rate, net trend and volatility from newest-first summaries.

    Because the input is newest first, summaries[:mid] is the recent half and
    summaries[mid:] the older half. The trend compares recent to older.
    """
    if not summaries:
        return HistoricalContext()

    nets = [s.net or 0.0 for s in summaries]
    avg_net = mean(nets)
    avg_income = mean([s.income or 0.0 for s in summaries])
    savings_rate = (avg_net / avg_income * 100) if avg_income > 0 else 0.0

    if len(nets) < 2:
        net_trend = "stable"
    else:
        midpoint = len(nets) // 2
        recent_avg = mean(nets[:midpoint])
        older_avg = mean(nets[midpoint:])
        net_trend = classify_change(older_avg, recent_avg, NET_TREND_UP, NET_TREND_DOWN, NET_TREND_LABELS)

    std_dev = population_stddev(nets)
    if avg_net > 0 and std_dev / abs(avg_net) > HIGH_VOLATILITY_RATIO:
        volatility = "high"
    else:
        volatility = "low"

    return HistoricalContext(
        average_monthly_net=round_half_up(avg_net),
        net_trend=net_trend,
        volatility=volatility,
        savings_rate_avg=round_half_up(savings_rate, 1),
    )


def summarize_months(transactions: Iterable[TransactionEvent]) -> List[MonthlySummaryRecord]:
    """Roll transactions up into per-month income/expenses/net, oldest month first."""
    monthly: Dict[str, Dict[str, float]] = defaultdict(lambda: {"income": 0.0, "expenses": 0.0})

    for txn in transactions:
        txn_type = (txn.type or "").lower()
        month_key = get_month_key(txn.date)
        if txn_type == "income":
            monthly[month_key]["income"] += float(txn.amount)
        elif txn_type == "expense":
            monthly[month_key]["expenses"] += float(txn.amount)

    return [
        MonthlySummaryRecord(
            month=month,
            income=round_half_up(totals["income"], 2),
            expenses=round_half_up(totals["expenses"], 2),
            net=round_half_up(totals["income"] - totals["expenses"], 2),
        )
        for month, totals in sorted(monthly.items())
    ]


async def rebuild_monthly_summaries(
    db: AsyncSession,
    user_id: str,
    today: date,
    months_back: int = 12,
) -> List[MonthlySummaryRecord]:
    """Recompute and upsert the user's monthly summaries from raw transactions."""
    # Start on the 1st so the oldest month is complete
    window_start = add_months(today, -months_back).replace(day=1)
    transactions = await fetch_recent_transactions(db, user_id, today, lookback_days=(today - window_start).days)
    summaries = summarize_months(transactions)

    existing_stmt = select(models.MonthlySummary).where(
        models.MonthlySummary.user_id == user_id,
        models.MonthlySummary.month.in_([s.month for s in summaries]),
    )
    existing = {row.month: row for row in (await db.execute(existing_stmt)).scalars().all()}

    for summary in summaries:
        row = existing.get(summary.month)
        if row:
            row.income = summary.income
            row.expenses = summary.expenses
            row.net = summary.net
        else:
            db.add(models.MonthlySummary(user_id=user_id, **summary.model_dump()))

    await db.commit()
    logger.info(f"Rebuilt {len(summaries)} monthly summaries for user {user_id}")
    return summaries
