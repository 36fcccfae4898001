from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from goalcast import config, models
from goalcast.exceptions import ExternalServiceDegraded, NotFound
from goalcast.schemas.budgets import AlertType
from goalcast.schemas.forecasting import GoalPredictionOut, Narrative
from goalcast.schemas.goals import ContributionCreate
from goalcast.services import goals as goals_service


async def fake_narrator(goal, factors):
    return Narrative(insights=[f"{goal.name} is on track"], opportunities=["Round up purchases"])


async def failing_narrator(goal, factors):
    raise ExternalServiceDegraded("timeout")


async def empty_narrator(goal, factors):
    return Narrative()


async def crashing_narrator(goal, factors):
    raise AttributeError("'int' object has no attribute 'strip'")


@pytest.fixture
async def seeded_goal(db, make_goal, make_budget, add_transaction):
    goal = await make_goal(target_amount=12000, current_amount=2000)
    await make_goal(name="Vacation", target_amount=3000, current_amount=1000, priority=1)
    await make_goal(name="Not mine", user_id="user-2")
    for month in range(1, 6):
        db.add(models.GoalContribution(
            goal_id=goal.id, user_id="user-1", amount=500, contribution_date=date(2024, month, 5),
        ))
        db.add(models.MonthlySummary(
            user_id="user-1", month=f"2024-{month:02d}", income=4000, expenses=3000, net=1000,
        ))
    await db.commit()
    await make_budget(spent=600)
    await add_transaction(4000, date(2024, 5, 1), type="income")
    return goal


async def _prediction_count(db):
    return (await db.execute(select(func.count(models.GoalPrediction.id)))).scalar()


async def test_prediction_combines_signals_and_narrative(db, seeded_goal, today):
    response = await goals_service.predict_completion_for_goal(
        db, "user-1", seeded_goal.id, today, narrator=fake_narrator
    )

    prediction = response.prediction
    factors = prediction.prediction_factors
    assert response.persisted is True
    assert factors.contribution_stats.monthly_average == 500
    assert factors.contribution_stats.count == 5
    assert factors.competing_goals.competing_goals_count == 1
    assert factors.competing_goals.high_priority_competitors == 1
    assert factors.budget_utilization.utilization_rate == 60.0
    assert factors.historical_context.net_trend == "stable"
    # 10000 remaining at 500 a month
    assert prediction.predicted_completion_date == date(2026, 2, 15)
    assert prediction.confidence_score == 1.0
    assert prediction.ai_insights == ["Emergency fund is on track"]
    assert prediction.model_version == config.GEMINI_MODEL
    assert await _prediction_count(db) == 1


async def test_degraded_narrative_keeps_statistical_prediction(db, seeded_goal, today):
    response = await goals_service.predict_completion_for_goal(
        db, "user-1", seeded_goal.id, today, narrator=failing_narrator
    )

    assert response.persisted is True
    assert response.prediction.model_version == "statistical-v1"
    assert response.prediction.ai_insights == []
    assert response.prediction.predicted_completion_date == date(2026, 2, 15)


async def test_empty_narrative_keeps_statistical_model_version(db, seeded_goal, today):
    response = await goals_service.predict_completion_for_goal(
        db, "user-1", seeded_goal.id, today, narrator=empty_narrator
    )

    assert response.prediction.model_version == "statistical-v1"
    assert response.prediction.ai_insights == []


async def test_unexpected_narrator_error_keeps_statistical_prediction(db, seeded_goal, today):
    response = await goals_service.predict_completion_for_goal(
        db, "user-1", seeded_goal.id, today, narrator=crashing_narrator
    )

    assert response.persisted is True
    assert response.prediction.model_version == "statistical-v1"
    assert response.prediction.predicted_completion_date == date(2026, 2, 15)


async def test_prediction_is_returned_when_it_cannot_be_saved(db, seeded_goal, today, monkeypatch):
    async def broken_commit(self):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(AsyncSession, "commit", broken_commit)

    response = await goals_service.predict_completion_for_goal(
        db, "user-1", seeded_goal.id, today, narrator=None
    )

    assert response.persisted is False
    assert response.warning
    assert response.prediction.recommended_monthly_amount == 500


async def test_goal_of_another_user_is_not_found(db, seeded_goal, today):
    with pytest.raises(NotFound):
        await goals_service.predict_completion_for_goal(db, "user-2", seeded_goal.id, today, narrator=None)


async def test_latest_prediction(db, seeded_goal, today):
    with pytest.raises(NotFound):
        await goals_service.get_latest_prediction(db, "user-1", seeded_goal.id)

    await goals_service.predict_completion_for_goal(db, "user-1", seeded_goal.id, today, narrator=None)
    await goals_service.predict_completion_for_goal(db, "user-1", seeded_goal.id, today, narrator=fake_narrator)

    latest = GoalPredictionOut.model_validate(
        await goals_service.get_latest_prediction(db, "user-1", seeded_goal.id)
    )
    assert latest.goal_id == seeded_goal.id
    assert latest.ai_insights == ["Emergency fund is on track"]
    assert latest.prediction_factors.contribution_stats.monthly_average == 500
    assert await _prediction_count(db) == 2


async def test_contribution_crossing_a_milestone(db, make_goal, now):
    goal = await make_goal(name="Bike", target_amount=1000, current_amount=200)

    result = await goals_service.record_contribution(
        db, "user-1", goal.id, ContributionCreate(amount=100), now
    )

    assert result.current_amount == 300
    assert result.progress_percent == 30.0
    assert result.contribution.contribution_date == now.date()
    assert result.achievement.alert_type == AlertType.ACHIEVEMENT
    assert result.achievement.threshold_percentage == 25
    assert result.achievement.id is not None
    stored = (await db.execute(select(models.BudgetAlert))).scalars().all()
    assert [a.alert_type for a in stored] == ["achievement"]
    assert stored[0].goal_id == goal.id


async def test_contribution_completing_a_goal(db, make_goal, now):
    goal = await make_goal(name="Bike", target_amount=1000, current_amount=900)

    result = await goals_service.record_contribution(
        db, "user-1", goal.id, ContributionCreate(amount=150, contribution_date=date(2024, 6, 1)), now
    )

    assert result.progress_percent == 100
    assert result.achievement.threshold_percentage == 100
    assert goal.status == "completed"


async def test_contribution_without_milestone(db, make_goal, now):
    goal = await make_goal(name="Bike", target_amount=1000, current_amount=300)

    result = await goals_service.record_contribution(
        db, "user-1", goal.id, ContributionCreate(amount=50), now
    )

    assert result.achievement is None
