from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db, get_session_factory
from ..dependencies import get_current_user_id, require_internal_caller
from ..exceptions import AlertTransitionError, NotFound
from ..schemas.budgets import (
    AlertAction,
    BudgetAlertRecord,
    BudgetCheckResult,
    BudgetStatusOut,
    BudgetSweepResult,
)
from ..services import budget_alerts as alerts_service
from ..services import budgets as budgets_service

router = APIRouter(prefix="/budgets", tags=["Budgets"])


@router.get("/current", response_model=List[BudgetStatusOut])
async def get_current_budgets(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Active budgets with refreshed spend and on_track/warning/critical/exceeded status."""
    return await budgets_service.get_current_budgets(db, user_id, date.today())


@router.post("/check-all", response_model=BudgetSweepResult, dependencies=[Depends(require_internal_caller)])
async def check_all_budgets(session_factory=Depends(get_session_factory)):
    """Evaluate every active budget and create alerts for newly crossed thresholds."""
    return await alerts_service.check_all_budgets(session_factory, datetime.now())


@router.get("/alerts", response_model=List[BudgetAlertRecord])
async def get_alerts(
    acknowledged: Optional[bool] = None,
    alert_type: Optional[str] = Query(default=None, alias="type"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Active alerts, newest first. Dismissed alerts are not listed."""
    return await alerts_service.list_alerts(db, user_id, acknowledged, alert_type)


@router.patch("/alerts/{alert_id}", response_model=BudgetAlertRecord)
async def update_alert(
    alert_id: int,
    body: AlertAction,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Acknowledge or dismiss an alert."""
    try:
        return await alerts_service.apply_alert_action(db, user_id, alert_id, body.action, datetime.now())
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlertTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/alerts/{alert_id}")
async def delete_alert(
    alert_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Delete an alert."""
    try:
        await alerts_service.delete_alert(db, user_id, alert_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Alert deleted successfully"}


@router.post("/{budget_id}/check", response_model=BudgetCheckResult)
async def check_budget(
    budget_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Re-evaluate one budget and return its status plus any newly triggered alert."""
    try:
        return await alerts_service.check_budget(db, user_id, budget_id, datetime.now())
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
