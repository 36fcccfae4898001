from datetime import date

import pytest

from goalcast import models
from goalcast.schemas.budgets import BudgetStatus
from goalcast.schemas.forecasting import BudgetSnapshot
from goalcast.services.budgets import (
    budget_percentage,
    build_budget_status,
    calculate_budget_utilization,
    classify_budget_status,
    get_current_budgets,
    project_overspend,
)


@pytest.mark.parametrize("percentage, expected", [
    (0, BudgetStatus.ON_TRACK),
    (69.9, BudgetStatus.ON_TRACK),
    (70, BudgetStatus.WARNING),
    (89.9, BudgetStatus.WARNING),
    (90, BudgetStatus.CRITICAL),
    (99.99, BudgetStatus.CRITICAL),
    (100, BudgetStatus.EXCEEDED),
    (150, BudgetStatus.EXCEEDED),
])
def test_classify_budget_status(percentage, expected):
    assert classify_budget_status(percentage) == expected


def test_zero_budget_has_zero_percentage():
    assert budget_percentage(50, 0) == 0


def test_utilization_without_budgets():
    utilization = calculate_budget_utilization([])

    assert utilization.budget_discipline == "unknown"
    assert utilization.utilization_rate == 0


@pytest.mark.parametrize("spent, discipline", [
    (800, "conservative"),
    (1000, "good"),
    (1500, "good"),
    (1900, "tight"),
    (2000, "tight"),
    (2200, "overspending"),
])
def test_utilization_discipline(spent, discipline):
    budgets = [
        BudgetSnapshot(category="Food", amount=1000, spent=spent / 2),
        BudgetSnapshot(category="Fun", amount=1000, spent=spent / 2),
    ]

    utilization = calculate_budget_utilization(budgets)

    assert utilization.budget_discipline == discipline
    assert utilization.total_budgeted == 2000
    assert utilization.total_spent == spent


def test_utilization_rate_is_rounded():
    utilization = calculate_budget_utilization([BudgetSnapshot(category="Food", amount=300, spent=100)])

    assert utilization.utilization_rate == 33.3


def test_project_overspend_at_current_pace():
    projection = project_overspend(1000, 600, date(2024, 6, 1), date(2024, 6, 30), date(2024, 6, 15))

    # 15 days elapsed at 40/day, 15 days left
    assert projection.daily_rate == 40
    assert projection.projected_amount == 1200
    assert projection.likely_to_exceed is True
    assert projection.days_until_exceed == 10


def test_project_overspend_within_budget():
    projection = project_overspend(1000, 300, date(2024, 6, 1), date(2024, 6, 30), date(2024, 6, 15))

    assert projection.likely_to_exceed is False
    assert projection.days_until_exceed is None


def test_no_projection_outside_a_bounded_running_period():
    start, end = date(2024, 6, 1), date(2024, 6, 30)

    assert project_overspend(1000, 600, start, None, date(2024, 6, 15)) is None
    assert project_overspend(1000, 600, start, end, date(2024, 6, 30)) is None
    assert project_overspend(1000, 600, start, end, date(2024, 5, 20)) is None


def test_build_budget_status():
    budget = models.Budget(
        id=1, user_id="user-1", category="Food", amount=500.0, spent=450.0,
        period="monthly", start_date=date(2024, 6, 1), end_date=date(2024, 6, 30),
    )

    status = build_budget_status(budget, date(2024, 6, 15))

    assert status.remaining == 50
    assert status.percentage == 90.0
    assert status.status == BudgetStatus.CRITICAL
    assert status.days_remaining == 15


async def test_get_current_budgets_refreshes_spend(db, make_budget, add_transaction, today):
    await make_budget(category="Food", amount=1000)
    await make_budget(category="Old", amount=100, is_active=False)
    await add_transaction(450, date(2024, 6, 3))
    await add_transaction(350, date(2024, 6, 10))
    await add_transaction(999, date(2024, 5, 31))
    await add_transaction(999, date(2024, 6, 10), category="Travel")
    await add_transaction(999, date(2024, 6, 10), type="income")

    statuses = await get_current_budgets(db, "user-1", today)

    assert len(statuses) == 1
    assert statuses[0].spent == 800
    assert statuses[0].status == BudgetStatus.WARNING
