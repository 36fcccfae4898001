from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_current_user_id
from ..schemas.forecasting import MonthlySummariesResult
from ..services import history as history_service

router = APIRouter(prefix="/monthly-summary", tags=["Monthly Summary"])


@router.post("/recalculate", response_model=MonthlySummariesResult)
async def recalculate_monthly_summaries(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Rebuild the last 12 months of income/expense/net summaries from transactions."""
    months = await history_service.rebuild_monthly_summaries(db, user_id, date.today())
    return MonthlySummariesResult(months=months, months_written=len(months))
