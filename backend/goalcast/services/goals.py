import logging
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .. import config, models
from ..exceptions import ExternalServiceDegraded, NotFound, PersistenceFailure
from ..schemas.forecasting import (
    BudgetSnapshot,
    GoalPrediction,
    GoalPredictionResponse,
    GoalSnapshot,
    Narrative,
    PredictionFactors,
)
from ..schemas.goals import ContributionCreate, ContributionOut, ContributionResult
from .alerts import evaluate_goal_milestone
from .budget_alerts import alert_to_row
from .budgets import calculate_budget_utilization, fetch_active_budgets
from .competing_goals import calculate_competing_goals_impact, fetch_competing_goals
from .contributions import calculate_contribution_stats, fetch_contributions
from .history import calculate_historical_context, fetch_monthly_summaries
from .narrative import generate_goal_narrative
from .predictor import predict_goal_completion
from .trends import calculate_financial_trends, fetch_recent_transactions

logger = logging.getLogger(__name__)

NarrativeGenerator = Callable[[GoalSnapshot, PredictionFactors], Awaitable[Narrative]]


async def get_goal_for_user(db: AsyncSession, user_id: str, goal_id: int) -> models.SavingsGoal:
    """Load a goal owned by `user_id` or raise NotFound."""
    stmt = select(models.SavingsGoal).where(
        models.SavingsGoal.id == goal_id,
        models.SavingsGoal.user_id == user_id,
    )
    goal = (await db.execute(stmt)).scalar_one_or_none()
    if not goal:
        raise NotFound("Goal", goal_id)
    return goal


async def collect_prediction_factors(
    db: AsyncSession,
    goal: models.SavingsGoal,
    today: date,
) -> PredictionFactors:
    """Read every record set the forecast needs and compute the five signals.

    The reads share one session, so they run one after another.
    """
    contributions = await fetch_contributions(db, goal.id, today)
    transactions = await fetch_recent_transactions(db, goal.user_id, today)
    competing_goals = await fetch_competing_goals(db, goal.user_id, goal.id)
    budgets = await fetch_active_budgets(db, goal.user_id)
    summaries = await fetch_monthly_summaries(db, goal.user_id)

    return PredictionFactors(
        contribution_stats=calculate_contribution_stats(contributions),
        financial_trends=calculate_financial_trends(transactions),
        historical_context=calculate_historical_context(summaries),
        competing_goals=calculate_competing_goals_impact(competing_goals, today),
        budget_utilization=calculate_budget_utilization(
            BudgetSnapshot.model_validate(b) for b in budgets
        ),
    )


async def save_prediction(
    db: AsyncSession,
    goal: models.SavingsGoal,
    prediction: GoalPrediction,
) -> models.GoalPrediction:
    """Insert the prediction as a new row. Older predictions are kept for audit."""
    goal_id = goal.id
    data = prediction.model_dump(mode="json")
    row = models.GoalPrediction(
        goal_id=goal_id,
        user_id=goal.user_id,
        predicted_completion_date=prediction.predicted_completion_date,
        confidence_score=prediction.confidence_score,
        recommended_monthly_amount=prediction.recommended_monthly_amount,
        minimum_monthly_amount=prediction.minimum_monthly_amount,
        monthly_projections=data["monthly_projections"],
        ai_insights=data["ai_insights"],
        risk_factors=data["risk_factors"],
        opportunities=data["opportunities"],
        model_version=prediction.model_version,
        prediction_factors=data["prediction_factors"],
    )
    try:
        db.add(row)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error storing prediction for goal {goal_id}: {e}")
        raise PersistenceFailure("Prediction was computed but could not be saved.") from e
    return row


async def predict_completion_for_goal(
    db: AsyncSession,
    user_id: str,
    goal_id: int,
    today: date,
    narrator: Optional[NarrativeGenerator] = generate_goal_narrative,
) -> GoalPredictionResponse:
    """Forecast a goal's completion, augment it with a narrative when available, and store it."""
    goal = await get_goal_for_user(db, user_id, goal_id)
    snapshot = GoalSnapshot.model_validate(goal)
    factors = await collect_prediction_factors(db, goal, today)

    narrative = None
    model_version = config.STATISTICAL_MODEL_VERSION
    if narrator is not None:
        try:
            narrative = await narrator(snapshot, factors)
        except ExternalServiceDegraded as e:
            logger.warning(f"Narrative unavailable for goal {goal_id}, using statistical prediction only: {e}")
        except Exception as e:
            logger.exception(f"Narrative generation failed for goal {goal_id}: {e}")
        if narrative is not None and (narrative.insights or narrative.risk_factors or narrative.opportunities):
            model_version = config.GEMINI_MODEL

    prediction = predict_goal_completion(snapshot, factors, today, narrative, model_version)
    persisted, warning = True, None
    try:
        await save_prediction(db, goal, prediction)
    except PersistenceFailure as e:
        persisted, warning = False, str(e)

    logger.info(
        f"Predicted goal {goal_id} completion on {prediction.predicted_completion_date} "
        f"(confidence {prediction.confidence_score}, persisted={persisted})"
    )
    return GoalPredictionResponse(prediction=prediction, persisted=persisted, warning=warning)


async def get_latest_prediction(db: AsyncSession, user_id: str, goal_id: int) -> models.GoalPrediction:
    """Most recent stored prediction for a goal."""
    await get_goal_for_user(db, user_id, goal_id)
    stmt = (
        select(models.GoalPrediction)
        .where(models.GoalPrediction.goal_id == goal_id)
        .order_by(models.GoalPrediction.created_at.desc(), models.GoalPrediction.id.desc())
        .limit(1)
    )
    prediction = (await db.execute(stmt)).scalar_one_or_none()
    if not prediction:
        raise NotFound("Prediction for goal", goal_id)
    return prediction


async def record_contribution(
    db: AsyncSession,
    user_id: str,
    goal_id: int,
    data: ContributionCreate,
    now: datetime,
) -> ContributionResult:
    """Add a contribution, move the goal balance and raise an achievement alert on milestones."""
    goal = await get_goal_for_user(db, user_id, goal_id)
    previous_amount = goal.current_amount or 0.0

    contribution = models.GoalContribution(
        goal_id=goal.id,
        user_id=user_id,
        amount=data.amount,
        contribution_date=data.contribution_date or now.date(),
        note=data.note,
    )
    db.add(contribution)

    goal.current_amount = previous_amount + data.amount
    if goal.current_amount >= goal.target_amount:
        goal.status = "completed"

    achievement = evaluate_goal_milestone(
        goal.id, goal.name, previous_amount, goal.current_amount, goal.target_amount, now
    )
    alert_row = None
    if achievement:
        alert_row = alert_to_row(user_id, achievement)
        db.add(alert_row)

    await db.commit()
    await db.refresh(contribution)
    if alert_row is not None:
        await db.refresh(alert_row)
        achievement = achievement.model_copy(update={"id": alert_row.id})

    progress = (goal.current_amount / goal.target_amount * 100) if goal.target_amount > 0 else 0.0
    return ContributionResult(
        contribution=ContributionOut.model_validate(contribution),
        current_amount=round(goal.current_amount, 2),
        target_amount=goal.target_amount,
        progress_percent=round(min(progress, 100), 1),
        achievement=achievement,
    )
