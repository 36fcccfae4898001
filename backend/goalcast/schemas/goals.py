from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date

from .budgets import BudgetAlertRecord


class ContributionCreate(BaseModel):
    amount: float = Field(gt=0)
    contribution_date: Optional[date] = None
    note: Optional[str] = None


class ContributionOut(BaseModel):
    id: int
    goal_id: int
    amount: float
    contribution_date: date
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ContributionResult(BaseModel):
    contribution: ContributionOut
    current_amount: float
    target_amount: float
    progress_percent: float
    achievement: Optional[BudgetAlertRecord] = None
