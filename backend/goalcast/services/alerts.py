"""Threshold state machine for budget alerts.

Each budget remembers the highest band it was in at its last evaluation. A new
alert is emitted only when an evaluation lands in a strictly higher band, so
re-evaluating an unchanged percentage never produces a duplicate. The stored
band always follows the current percentage, which re-arms a threshold once
spend drops back below it.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from ..exceptions import AlertTransitionError
from ..schemas.budgets import AlertEvaluation, AlertType, BudgetAlertRecord, OverspendProjection
from .budgets import CRITICAL_AT, EXCEEDED_AT, WARNING_AT, budget_percentage

PREDICTION_MIN_PERCENT = 50
GOAL_MILESTONES = (25, 50, 75, 100)


class ThresholdBand(IntEnum):
    NONE = 0
    PREDICTED = PREDICTION_MIN_PERCENT
    WARNING = WARNING_AT
    CRITICAL = CRITICAL_AT
    EXCEEDED = EXCEEDED_AT


def band_for(percentage: float, projection: Optional[OverspendProjection] = None) -> ThresholdBand:
    if percentage >= EXCEEDED_AT:
        return ThresholdBand.EXCEEDED
    if percentage >= CRITICAL_AT:
        return ThresholdBand.CRITICAL
    if percentage >= WARNING_AT:
        return ThresholdBand.WARNING
    if percentage > PREDICTION_MIN_PERCENT and projection is not None and projection.likely_to_exceed:
        return ThresholdBand.PREDICTED
    return ThresholdBand.NONE


def build_recommendation(
    band: ThresholdBand,
    category: str,
    amount: float,
    spent: float,
    percentage: float,
    projection: Optional[OverspendProjection] = None,
) -> str:
    if band == ThresholdBand.EXCEEDED:
        return (
            f"You have exceeded your {category} budget by {spent - amount:,.2f}. "
            "Cut back on this category or adjust the budget for the next period."
        )
    if band == ThresholdBand.CRITICAL:
        return (
            f"You are close to your {category} budget limit with only {amount - spent:,.2f} left. "
            "Consider holding off on non-essential spending."
        )
    if band == ThresholdBand.WARNING:
        return (
            f"You have spent {percentage:.0f}% of your {category} budget. "
            "Keep an eye on spending to stay under the limit."
        )
    if band == ThresholdBand.PREDICTED and projection is not None:
        return (
            f"At your current pace you will spend about {projection.projected_amount:,.2f} on "
            f"{category} this period. Reduce your daily spending to stay within {amount:,.2f}."
        )
    return ""


def evaluate_budget_alert(
    budget_id: Optional[int],
    category: str,
    amount: float,
    spent: float,
    previous_band: int,
    now: datetime,
    projection: Optional[OverspendProjection] = None,
) -> AlertEvaluation:
    """Decide whether this evaluation crosses into a higher band than last time."""
    percentage = budget_percentage(spent, amount)
    current_band = band_for(percentage, projection)

    alert = None
    if current_band > previous_band:
        if current_band == ThresholdBand.EXCEEDED:
            alert_type, threshold = AlertType.EXCEEDED, float(EXCEEDED_AT)
        elif current_band == ThresholdBand.PREDICTED:
            alert_type, threshold = AlertType.PREDICTED_OVERSPEND, round(percentage, 1)
        else:
            alert_type, threshold = AlertType.APPROACHING, float(current_band)

        is_predicted = current_band == ThresholdBand.PREDICTED
        alert = BudgetAlertRecord(
            budget_id=budget_id,
            alert_type=alert_type,
            threshold_percentage=threshold,
            current_spent=round(spent, 2),
            budget_amount=amount,
            is_predicted=is_predicted,
            predicted_overspend_amount=(
                round(projection.projected_amount - amount, 2) if is_predicted else None
            ),
            ai_recommendation=build_recommendation(
                current_band, category, amount, spent, percentage, projection
            ),
            triggered_at=now,
        )

    return AlertEvaluation(
        previous_band=int(previous_band),
        current_band=int(current_band),
        alert=alert,
    )


def evaluate_goal_milestone(
    goal_id: Optional[int],
    goal_name: str,
    previous_amount: float,
    new_amount: float,
    target_amount: float,
    now: datetime,
) -> Optional[BudgetAlertRecord]:
    """Emit an achievement alert for the highest milestone crossed by a contribution."""
    if target_amount <= 0:
        return None

    before = previous_amount / target_amount * 100
    after = new_amount / target_amount * 100
    crossed = [m for m in GOAL_MILESTONES if before < m <= after]
    if not crossed:
        return None

    milestone = max(crossed)
    if milestone == 100:
        message = f"Congratulations! You reached your goal '{goal_name}'."
    else:
        message = f"You are {milestone}% of the way to '{goal_name}'. Keep it up!"

    return BudgetAlertRecord(
        goal_id=goal_id,
        alert_type=AlertType.ACHIEVEMENT,
        threshold_percentage=float(milestone),
        current_spent=round(new_amount, 2),
        budget_amount=target_amount,
        ai_recommendation=message,
        triggered_at=now,
    )


def acknowledge_alert(alert: BudgetAlertRecord, now: datetime) -> BudgetAlertRecord:
    """Mark an alert as seen. It stays listed. Acknowledging twice keeps the first timestamp."""
    if alert.dismissed_at is not None:
        raise AlertTransitionError(f"Alert {alert.id} was dismissed and cannot be acknowledged")
    if alert.acknowledged_at is not None:
        return alert
    return alert.model_copy(update={"acknowledged_at": now})


def dismiss_alert(alert: BudgetAlertRecord, now: datetime) -> BudgetAlertRecord:
    """Remove an alert from the active list."""
    if alert.dismissed_at is not None:
        return alert
    return alert.model_copy(update={"dismissed_at": now})
