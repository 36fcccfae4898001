from .timeseries import aggregate_by_month, get_month_key, half_split_trend
from .contributions import calculate_contribution_stats, fetch_contributions
from .trends import calculate_financial_trends, fetch_recent_transactions
from .history import (
    calculate_historical_context,
    fetch_monthly_summaries,
    rebuild_monthly_summaries,
    summarize_months,
)
from .competing_goals import calculate_competing_goals_impact, fetch_competing_goals
from .budgets import (
    build_budget_status,
    calculate_budget_utilization,
    classify_budget_status,
    get_current_budgets,
    project_overspend,
)
from .alerts import (
    acknowledge_alert,
    dismiss_alert,
    evaluate_budget_alert,
    evaluate_goal_milestone,
)
from .predictor import predict_goal_completion
from .narrative import generate_goal_narrative, parse_narrative
from .goals import (
    get_latest_prediction,
    predict_completion_for_goal,
    record_contribution,
)
from .budget_alerts import (
    apply_alert_action,
    check_all_budgets,
    check_budget,
    delete_alert,
    list_alerts,
)
