from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import date, datetime


class BudgetStatus(str, Enum):
    ON_TRACK = "on_track"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class AlertType(str, Enum):
    APPROACHING = "approaching"
    EXCEEDED = "exceeded"
    PREDICTED_OVERSPEND = "predicted_overspend"
    ACHIEVEMENT = "achievement"


class BudgetStatusOut(BaseModel):
    id: Optional[int] = None
    category: str
    amount: float
    spent: float
    remaining: float
    percentage: float
    status: BudgetStatus
    period: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days_remaining: Optional[int] = None


class OverspendProjection(BaseModel):
    likely_to_exceed: bool
    projected_amount: float
    daily_rate: float
    days_until_exceed: Optional[int] = None


class BudgetAlertRecord(BaseModel):
    """An alert as the engine sees it. Transitions return new records."""
    id: Optional[int] = None
    budget_id: Optional[int] = None
    goal_id: Optional[int] = None
    alert_type: AlertType
    threshold_percentage: float
    current_spent: float
    budget_amount: float
    is_predicted: bool = False
    predicted_overspend_amount: Optional[float] = None
    ai_recommendation: Optional[str] = None
    triggered_at: datetime
    acknowledged_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_active(self) -> bool:
        return self.dismissed_at is None


class AlertEvaluation(BaseModel):
    """Outcome of one alert-engine evaluation for a budget."""
    previous_band: int
    current_band: int
    alert: Optional[BudgetAlertRecord] = None


class BudgetCheckResult(BaseModel):
    budget: BudgetStatusOut
    new_alert: Optional[BudgetAlertRecord] = None
    persisted: bool = True
    warning: Optional[str] = None


class AlertAction(BaseModel):
    action: str  # "acknowledge" or "dismiss"


class BudgetSweepResult(BaseModel):
    budgets_checked: int
    alerts_created: int
    alerts: List[BudgetAlertRecord] = []
