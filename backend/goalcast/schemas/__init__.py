from .forecasting import (
    MonetaryEvent,
    TransactionEvent,
    MonthlySummaryRecord,
    CompetingGoal,
    BudgetSnapshot,
    ContributionStats,
    FinancialTrends,
    HistoricalContext,
    CompetingGoalsImpact,
    BudgetUtilization,
    PredictionFactors,
    GoalSnapshot,
    Narrative,
    MonthlyProjection,
    GoalPrediction,
    GoalPredictionOut,
    GoalPredictionResponse,
    MonthlySummariesResult,
)
from .budgets import (
    BudgetStatus,
    AlertType,
    BudgetStatusOut,
    OverspendProjection,
    BudgetAlertRecord,
    AlertEvaluation,
    BudgetCheckResult,
    AlertAction,
    BudgetSweepResult,
)
from .goals import ContributionCreate, ContributionOut, ContributionResult
