import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .. import models
from ..exceptions import NotFound, PersistenceFailure
from ..schemas.budgets import BudgetAlertRecord, BudgetCheckResult, BudgetSweepResult
from .alerts import acknowledge_alert, dismiss_alert, evaluate_budget_alert
from .budgets import build_budget_status, calculate_budget_spent, project_overspend

logger = logging.getLogger(__name__)

ALERT_ACTIONS = ("acknowledge", "dismiss")


def alert_to_row(user_id: str, record: BudgetAlertRecord) -> models.BudgetAlert:
    return models.BudgetAlert(
        user_id=user_id,
        budget_id=record.budget_id,
        goal_id=record.goal_id,
        alert_type=record.alert_type.value,
        threshold_percentage=record.threshold_percentage,
        current_spent=record.current_spent,
        budget_amount=record.budget_amount,
        is_predicted=record.is_predicted,
        predicted_overspend_amount=record.predicted_overspend_amount,
        ai_recommendation=record.ai_recommendation,
        triggered_at=record.triggered_at,
        acknowledged_at=record.acknowledged_at,
        dismissed_at=record.dismissed_at,
    )


async def get_budget_for_user(db: AsyncSession, user_id: str, budget_id: int) -> models.Budget:
    stmt = select(models.Budget).where(
        models.Budget.id == budget_id,
        models.Budget.user_id == user_id,
    )
    budget = (await db.execute(stmt)).scalar_one_or_none()
    if not budget:
        raise NotFound("Budget", budget_id)
    return budget


async def check_budget(db: AsyncSession, user_id: str, budget_id: int, now: datetime) -> BudgetCheckResult:
    """Refresh a budget's spend, classify it and persist any newly triggered alert."""
    budget = await get_budget_for_user(db, user_id, budget_id)
    today = now.date()

    budget.spent = await calculate_budget_spent(db, budget, today)
    projection = project_overspend(budget.amount, budget.spent, budget.start_date, budget.end_date, today)
    evaluation = evaluate_budget_alert(
        budget.id,
        budget.category,
        budget.amount,
        budget.spent,
        budget.alert_band or 0,
        now,
        projection,
    )
    budget.alert_band = evaluation.current_band
    status = build_budget_status(budget, today)

    try:
        new_alert = await _save_alert_state(db, user_id, budget_id, evaluation.alert)
    except PersistenceFailure as e:
        return BudgetCheckResult(budget=status, new_alert=evaluation.alert, persisted=False, warning=str(e))

    if new_alert is not None:
        logger.info(
            f"Created {new_alert.alert_type.value} alert for budget {budget_id} ({status.percentage:.1f}%)"
        )
    return BudgetCheckResult(budget=status, new_alert=new_alert)


async def _save_alert_state(
    db: AsyncSession,
    user_id: str,
    budget_id: int,
    alert: Optional[BudgetAlertRecord],
) -> Optional[BudgetAlertRecord]:
    """Commit the budget's new band together with the alert it triggered, if any."""
    alert_row = alert_to_row(user_id, alert) if alert else None
    try:
        if alert_row is not None:
            db.add(alert_row)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error saving alert state for budget {budget_id}: {e}")
        raise PersistenceFailure("Budget was evaluated but the alert could not be saved.") from e

    if alert_row is None:
        return None
    await db.refresh(alert_row)
    return BudgetAlertRecord.model_validate(alert_row)


async def check_all_budgets(
    session_factory: Callable[[], AsyncSession],
    now: datetime,
    concurrency: int = 10,
) -> BudgetSweepResult:
    """Evaluate every active budget. Each budget gets its own session."""
    async with session_factory() as db:
        rows = (await db.execute(
            select(models.Budget.id, models.Budget.user_id).where(models.Budget.is_active == True)
        )).all()

    semaphore = asyncio.Semaphore(concurrency)

    async def _check_one(budget_id: int, user_id: str) -> Optional[BudgetCheckResult]:
        async with semaphore:
            async with session_factory() as db:
                try:
                    return await check_budget(db, user_id, budget_id, now)
                except NotFound:
                    logger.warning(f"Budget {budget_id} disappeared during the sweep, skipping")
                    return None

    results = await asyncio.gather(*[_check_one(r.id, r.user_id) for r in rows])
    alerts = [r.new_alert for r in results if r is not None and r.new_alert is not None]

    logger.info(f"Budget alerts check completed: {len(rows)} budgets, {len(alerts)} new alerts")
    return BudgetSweepResult(budgets_checked=len(rows), alerts_created=len(alerts), alerts=alerts)


async def list_alerts(
    db: AsyncSession,
    user_id: str,
    acknowledged: Optional[bool] = None,
    alert_type: Optional[str] = None,
    limit: int = 50,
) -> List[BudgetAlertRecord]:
    """Active (not dismissed) alerts, newest first."""
    stmt = (
        select(models.BudgetAlert)
        .where(
            models.BudgetAlert.user_id == user_id,
            models.BudgetAlert.dismissed_at.is_(None),
        )
        .order_by(models.BudgetAlert.triggered_at.desc(), models.BudgetAlert.id.desc())
        .limit(limit)
    )
    if acknowledged is True:
        stmt = stmt.where(models.BudgetAlert.acknowledged_at.is_not(None))
    elif acknowledged is False:
        stmt = stmt.where(models.BudgetAlert.acknowledged_at.is_(None))
    if alert_type:
        stmt = stmt.where(models.BudgetAlert.alert_type == alert_type)

    result = await db.execute(stmt)
    return [BudgetAlertRecord.model_validate(row) for row in result.scalars().all()]


async def _get_alert_for_user(db: AsyncSession, user_id: str, alert_id: int) -> models.BudgetAlert:
    stmt = select(models.BudgetAlert).where(
        models.BudgetAlert.id == alert_id,
        models.BudgetAlert.user_id == user_id,
    )
    alert = (await db.execute(stmt)).scalar_one_or_none()
    if not alert:
        raise NotFound("Alert", alert_id)
    return alert


async def apply_alert_action(
    db: AsyncSession,
    user_id: str,
    alert_id: int,
    action: str,
    now: datetime,
) -> BudgetAlertRecord:
    """Acknowledge or dismiss an alert and store the resulting record."""
    if action not in ALERT_ACTIONS:
        raise ValueError(f"Invalid action '{action}'. Use 'acknowledge' or 'dismiss'")

    row = await _get_alert_for_user(db, user_id, alert_id)
    record = BudgetAlertRecord.model_validate(row)

    if action == "acknowledge":
        updated = acknowledge_alert(record, now)
    else:
        updated = dismiss_alert(record, now)

    row.acknowledged_at = updated.acknowledged_at
    row.dismissed_at = updated.dismissed_at
    await db.commit()
    return updated


async def delete_alert(db: AsyncSession, user_id: str, alert_id: int) -> None:
    row = await _get_alert_for_user(db, user_id, alert_id)
    await db.delete(row)
    await db.commit()
