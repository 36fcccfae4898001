import math
from datetime import date
from typing import List, Optional

from ..config import DEFAULT_MONTHLY_VELOCITY, STATISTICAL_MODEL_VERSION
from ..schemas.forecasting import (
    GoalPrediction,
    GoalSnapshot,
    MonthlyProjection,
    Narrative,
    PredictionFactors,
)
from .timeseries import add_months, get_month_key, months_until, round_half_up

EXPLICIT_DEADLINE_CONFIDENCE = 0.95
NO_SIGNAL_CONFIDENCE = 0.5
MINIMUM_AMOUNT_RATIO = 0.75
PROJECTION_MONTHS = 12


def monthly_velocity(factors: PredictionFactors) -> float:
    """Contribution pace, else the overall monthly surplus, else a floor default."""
    if factors.contribution_stats.monthly_average > 0:
        return factors.contribution_stats.monthly_average
    if factors.financial_trends.monthly_surplus > 0:
        return factors.financial_trends.monthly_surplus
    return DEFAULT_MONTHLY_VELOCITY


def generate_monthly_projections(
    current: float,
    target: float,
    monthly_amount: float,
    today: date,
    months: int = PROJECTION_MONTHS,
) -> List[MonthlyProjection]:
    """Project the balance month by month until the target, clamped to the target."""
    projections = []
    projected = current
    first_of_month = today.replace(day=1)

    for i in range(1, months + 1):
        if projected >= target or monthly_amount <= 0:
            break
        projected += monthly_amount
        projections.append(MonthlyProjection(
            month=get_month_key(add_months(first_of_month, i)),
            projected_amount=round_half_up(min(projected, target)),
        ))

    return projections


def predict_goal_completion(
    goal: GoalSnapshot,
    factors: PredictionFactors,
    today: date,
    narrative: Optional[Narrative] = None,
    model_version: str = STATISTICAL_MODEL_VERSION,
) -> GoalPrediction:
    """Build the deterministic prediction for a goal and merge the narrative, if any.

    A goal with a target date is forecast to finish on that date, and the
    recommended amount is whatever closes the gap in time. Without one, the
    date follows from the monthly velocity and the confidence is the
    contribution consistency score.
    """
    remaining = max(0.0, goal.target_amount - goal.current_amount)

    if goal.target_date:
        predicted_date = goal.target_date
        recommended = math.ceil(remaining / months_until(today, goal.target_date))
        confidence = EXPLICIT_DEADLINE_CONFIDENCE
    else:
        velocity = monthly_velocity(factors)
        months_needed = math.ceil(remaining / velocity)
        predicted_date = add_months(today, months_needed)
        recommended = math.ceil(velocity) if remaining > 0 else 0
        stats = factors.contribution_stats
        confidence = stats.consistency_score if stats.count > 0 else NO_SIGNAL_CONFIDENCE

    narrative = narrative or Narrative()

    return GoalPrediction(
        predicted_completion_date=predicted_date,
        confidence_score=confidence,
        recommended_monthly_amount=recommended,
        minimum_monthly_amount=math.ceil(recommended * MINIMUM_AMOUNT_RATIO),
        monthly_projections=generate_monthly_projections(
            goal.current_amount, goal.target_amount, recommended, today
        ),
        ai_insights=narrative.insights,
        risk_factors=narrative.risk_factors,
        opportunities=narrative.opportunities,
        model_version=model_version,
        prediction_factors=factors,
    )
