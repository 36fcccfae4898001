from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from datetime import date, datetime


def _coerce_date(value: Any) -> Any:
    """Accept dates, datetimes and ISO strings (with or without a time part)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


class MonetaryEvent(BaseModel):
    """A dated amount: a contribution, a transaction or a spend record."""
    date: date
    amount: float

    model_config = ConfigDict(frozen=True)

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> Any:
        return _coerce_date(value)


class TransactionEvent(MonetaryEvent):
    type: str  # "income" or "expense"


class MonthlySummaryRecord(BaseModel):
    month: str  # "YYYY-MM"
    income: float = 0.0
    expenses: float = 0.0
    net: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class CompetingGoal(BaseModel):
    name: Optional[str] = None
    target_amount: float
    current_amount: float = 0.0
    priority: Optional[int] = None  # 1 = highest ... 5 = lowest
    target_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class BudgetSnapshot(BaseModel):
    category: str
    amount: float
    spent: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class ContributionStats(BaseModel):
    total: float = 0.0
    count: int = 0
    monthly_average: float = 0.0
    trend: str = "no_data"  # "no_data", "increasing", "decreasing", "stable"
    consistency_score: float = 0.0


class FinancialTrends(BaseModel):
    monthly_income: float = 0.0
    monthly_expenses: float = 0.0
    monthly_surplus: float = 0.0
    income_trend: str = "stable"  # "increasing", "decreasing", "stable"
    expense_trend: str = "stable"


class HistoricalContext(BaseModel):
    average_monthly_net: float = 0.0
    net_trend: str = "no_data"  # "no_data", "improving", "declining", "stable"
    volatility: str = "unknown"  # "low", "high", "unknown"
    savings_rate_avg: float = 0.0


class CompetingGoalsImpact(BaseModel):
    competing_goals_count: int = 0
    total_competing_target: float = 0.0
    high_priority_competitors: int = 0
    estimated_monthly_allocation_pressure: float = 0.0


class BudgetUtilization(BaseModel):
    total_budgeted: float = 0.0
    total_spent: float = 0.0
    utilization_rate: float = 0.0
    budget_discipline: str = "unknown"  # "good", "tight", "overspending", "conservative", "unknown"


class PredictionFactors(BaseModel):
    """The five deterministic signals a prediction was computed from."""
    contribution_stats: ContributionStats = Field(default_factory=ContributionStats)
    financial_trends: FinancialTrends = Field(default_factory=FinancialTrends)
    historical_context: HistoricalContext = Field(default_factory=HistoricalContext)
    competing_goals: CompetingGoalsImpact = Field(default_factory=CompetingGoalsImpact)
    budget_utilization: BudgetUtilization = Field(default_factory=BudgetUtilization)


class GoalSnapshot(BaseModel):
    """The goal fields the predictor needs."""
    id: Optional[int] = None
    name: str = ""
    target_amount: float
    current_amount: float = 0.0
    target_date: Optional[date] = None
    priority: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class Narrative(BaseModel):
    """Best-effort parse of the language-model output. Every field may be empty."""
    insights: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)


class MonthlyProjection(BaseModel):
    month: str  # "YYYY-MM"
    projected_amount: float


class GoalPrediction(BaseModel):
    predicted_completion_date: date
    confidence_score: float
    recommended_monthly_amount: float
    minimum_monthly_amount: float
    monthly_projections: List[MonthlyProjection] = Field(default_factory=list)
    ai_insights: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    model_version: str
    prediction_factors: PredictionFactors


class GoalPredictionOut(GoalPrediction):
    id: int
    goal_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GoalPredictionResponse(BaseModel):
    prediction: GoalPrediction
    persisted: bool = True
    warning: Optional[str] = None


class MonthlySummariesResult(BaseModel):
    months: List[MonthlySummaryRecord]
    months_written: int
