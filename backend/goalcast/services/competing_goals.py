from datetime import date
from typing import Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .. import models
from ..schemas.forecasting import CompetingGoal, CompetingGoalsImpact
from .timeseries import months_until, round_half_up

HIGH_PRIORITY_MAX = 2  # priority 1 = highest ... 5 = lowest


async def fetch_competing_goals(db: AsyncSession, user_id: str, goal_id: int) -> List[CompetingGoal]:
    """Fetch the user's other active goals."""
    stmt = (
        select(models.SavingsGoal)
        .where(
            models.SavingsGoal.user_id == user_id,
            models.SavingsGoal.status == "active",
            models.SavingsGoal.id != goal_id,
        )
        .order_by(models.SavingsGoal.id)
    )
    result = await db.execute(stmt)
    return [CompetingGoal.model_validate(g) for g in result.scalars().all()]


def calculate_competing_goals_impact(goals: Iterable[CompetingGoal], today: date) -> CompetingGoalsImpact:
    """Aggregate demand from the goals competing with the one being forecast.

    Only time-boxed goals (with a target date) add monthly allocation pressure.
    """
    goals = list(goals)
    total_remaining = 0.0
    monthly_pressure = 0.0

    for goal in goals:
        remaining = goal.target_amount - (goal.current_amount or 0.0)
        if remaining <= 0:
            continue
        total_remaining += remaining
        if goal.target_date:
            monthly_pressure += remaining / months_until(today, goal.target_date)

    high_priority = sum(
        1 for g in goals if g.priority is not None and g.priority <= HIGH_PRIORITY_MAX
    )

    return CompetingGoalsImpact(
        competing_goals_count=len(goals),
        total_competing_target=round_half_up(total_remaining),
        high_priority_competitors=high_priority,
        estimated_monthly_allocation_pressure=round_half_up(monthly_pressure),
    )
