import logging
import math
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .. import models
from ..schemas.budgets import BudgetStatus, BudgetStatusOut, OverspendProjection
from ..schemas.forecasting import BudgetSnapshot, BudgetUtilization
from .timeseries import round_half_up

logger = logging.getLogger(__name__)

# Status cut-offs (percent of budget spent). 100% exactly counts as exceeded.
EXCEEDED_AT = 100
CRITICAL_AT = 90
WARNING_AT = 70


def budget_percentage(spent: float, amount: float) -> float:
    return (spent / amount * 100) if amount > 0 else 0.0


def classify_budget_status(percentage: float) -> BudgetStatus:
    """Map percent-spent to a status."""
    if percentage >= EXCEEDED_AT:
        return BudgetStatus.EXCEEDED
    if percentage >= CRITICAL_AT:
        return BudgetStatus.CRITICAL
    if percentage >= WARNING_AT:
        return BudgetStatus.WARNING
    return BudgetStatus.ON_TRACK


def days_remaining(end_date: Optional[date], today: date) -> Optional[int]:
    """Days left in the budget period, floored at zero. None for open-ended periods."""
    if end_date is None:
        return None
    return max(0, (end_date - today).days)


def calculate_budget_utilization(budgets: Iterable[BudgetSnapshot]) -> BudgetUtilization:
    """Aggregate utilization and a discipline label across active budgets."""
    budgets = list(budgets)
    if not budgets:
        return BudgetUtilization()

    total_budgeted = sum(b.amount for b in budgets)
    total_spent = sum(b.spent or 0.0 for b in budgets)
    utilization_rate = budget_percentage(total_spent, total_budgeted)

    if utilization_rate > 100:
        discipline = "overspending"
    elif utilization_rate > 90:
        discipline = "tight"
    elif utilization_rate < 50:
        discipline = "conservative"
    else:
        discipline = "good"

    return BudgetUtilization(
        total_budgeted=round_half_up(total_budgeted),
        total_spent=round_half_up(total_spent),
        utilization_rate=round_half_up(utilization_rate, 1),
        budget_discipline=discipline,
    )


def project_overspend(
    amount: float,
    spent: float,
    start_date: Optional[date],
    end_date: Optional[date],
    today: date,
) -> Optional[OverspendProjection]:
    """Linear end-of-period projection from the spend rate so far.

    Returns None when the period is open-ended, already over, or not started.
    """
    left = days_remaining(end_date, today)
    if not left or start_date is None or today < start_date:
        return None

    elapsed_days = (today - start_date).days + 1
    daily_rate = spent / elapsed_days
    projected = spent + daily_rate * left
    likely_to_exceed = projected > amount

    days_until_exceed = None
    if likely_to_exceed and daily_rate > 0:
        days_until_exceed = max(0, math.floor((amount - spent) / daily_rate))

    return OverspendProjection(
        likely_to_exceed=likely_to_exceed,
        projected_amount=round_half_up(projected, 2),
        daily_rate=round_half_up(daily_rate, 2),
        days_until_exceed=days_until_exceed,
    )


def build_budget_status(budget: models.Budget, today: date) -> BudgetStatusOut:
    """Derive the read-time view of a budget. Status is never stored."""
    spent = float(budget.spent or 0.0)
    percentage = budget_percentage(spent, budget.amount)
    return BudgetStatusOut(
        id=budget.id,
        category=budget.category,
        amount=budget.amount,
        spent=round_half_up(spent, 2),
        remaining=round_half_up(budget.amount - spent, 2),
        percentage=round_half_up(percentage, 1),
        status=classify_budget_status(percentage),
        period=budget.period,
        start_date=budget.start_date,
        end_date=budget.end_date,
        days_remaining=days_remaining(budget.end_date, today),
    )


async def fetch_active_budgets(db: AsyncSession, user_id: str) -> List[models.Budget]:
    stmt = (
        select(models.Budget)
        .where(models.Budget.user_id == user_id, models.Budget.is_active == True)
        .order_by(models.Budget.category)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def calculate_budget_spent(db: AsyncSession, budget: models.Budget, today: date) -> float:
    """Sum the category's expenses between the period start and min(end, today)."""
    period_end = min(budget.end_date, today) if budget.end_date else today
    stmt = (
        select(func.coalesce(func.sum(models.Transaction.amount), 0.0))
        .where(
            models.Transaction.user_id == budget.user_id,
            models.Transaction.type == "expense",
            models.Transaction.category == budget.category,
            models.Transaction.transaction_date >= budget.start_date,
            models.Transaction.transaction_date <= period_end,
        )
    )
    result = await db.execute(stmt)
    return float(result.scalar() or 0.0)


async def get_current_budgets(db: AsyncSession, user_id: str, today: date) -> List[BudgetStatusOut]:
    """Refresh `spent` for every active budget and return their derived status."""
    budgets = await fetch_active_budgets(db, user_id)
    for budget in budgets:
        budget.spent = await calculate_budget_spent(db, budget, today)
    await db.commit()
    return [build_budget_status(b, today) for b in budgets]
