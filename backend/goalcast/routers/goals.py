from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_current_user_id
from ..exceptions import NotFound
from ..schemas.forecasting import GoalPredictionOut, GoalPredictionResponse
from ..schemas.goals import ContributionCreate, ContributionResult
from ..services import goals as goals_service

router = APIRouter(prefix="/savings-goals", tags=["Savings Goals"])


@router.post("/{goal_id}/predict", response_model=GoalPredictionResponse)
async def predict_goal(
    goal_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Forecast when a savings goal will be reached.

    Combines contribution history, income/expense trends, monthly history,
    competing goals and budget utilization. An AI narrative is added when the
    narrative service answers in time.
    """
    try:
        return await goals_service.predict_completion_for_goal(db, user_id, goal_id, date.today())
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{goal_id}/predictions/latest", response_model=GoalPredictionOut)
async def get_latest_prediction(
    goal_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Most recent stored prediction for a goal."""
    try:
        return await goals_service.get_latest_prediction(db, user_id, goal_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{goal_id}/contribute", response_model=ContributionResult)
async def contribute(
    goal_id: int,
    data: ContributionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Add money to a goal. Crossing 25/50/75/100% creates an achievement alert."""
    try:
        return await goals_service.record_contribution(db, user_id, goal_id, data, datetime.now())
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
