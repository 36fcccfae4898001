from datetime import date
from typing import Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .. import models
from ..config import CONTRIBUTION_LOOKBACK_MONTHS
from ..schemas.forecasting import ContributionStats, MonetaryEvent
from .timeseries import (
    add_months,
    aggregate_by_month,
    chronological_values,
    half_split_trend,
    mean,
    population_stddev,
    round_half_up,
)

TREND_UP = 1.1
TREND_DOWN = 0.9


async def fetch_contributions(
    db: AsyncSession,
    goal_id: int,
    today: date,
    months_back: int = CONTRIBUTION_LOOKBACK_MONTHS,
) -> List[MonetaryEvent]:
    """Fetch a goal's contributions for the last `months_back` months, oldest first."""
    cutoff_date = add_months(today, -months_back)
    stmt = (
        select(models.GoalContribution.contribution_date, models.GoalContribution.amount)
        .where(
            models.GoalContribution.goal_id == goal_id,
            models.GoalContribution.contribution_date >= cutoff_date,
        )
        .order_by(models.GoalContribution.contribution_date.asc())
    )
    result = await db.execute(stmt)
    return [MonetaryEvent(date=row.contribution_date, amount=row.amount) for row in result.all()]


def calculate_contribution_stats(contributions: Iterable[MonetaryEvent]) -> ContributionStats:
    """Summarize a goal's contribution history.

    The monthly average is the mean of the per-month totals (months without
    contributions are not counted). The consistency score is the inverted
    coefficient of variation of those totals, clamped to [0, 1], and serves
    as the confidence proxy for the data-driven forecast.
    """
    contributions = list(contributions)
    if not contributions:
        return ContributionStats()

    total = sum(float(c.amount) for c in contributions)
    monthly_values = chronological_values(aggregate_by_month(contributions))

    monthly_average = mean(monthly_values)
    trend = half_split_trend(monthly_values, TREND_UP, TREND_DOWN)

    if monthly_average > 0:
        consistency_score = max(0.0, 1 - population_stddev(monthly_values) / monthly_average)
    else:
        consistency_score = 0.0

    return ContributionStats(
        total=round_half_up(total, 2),
        count=len(contributions),
        monthly_average=round_half_up(monthly_average),
        trend=trend,
        consistency_score=round_half_up(consistency_score, 2),
    )
