from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, Date, ForeignKey, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from .database import Base


class SavingsGoal(Base):
    __tablename__ = "savings_goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, default=0.0)
    target_date = Column(Date, nullable=True)
    priority = Column(Integer, default=3)  # 1 = highest ... 5 = lowest
    status = Column(String, default="active", index=True)  # active, completed, paused
    created_at = Column(DateTime, default=datetime.now)

    contributions = relationship("GoalContribution", back_populates="goal", cascade="all, delete-orphan")
    predictions = relationship("GoalPrediction", back_populates="goal", cascade="all, delete-orphan")


class GoalContribution(Base):
    __tablename__ = "goal_contributions"

    id = Column(Integer, primary_key=True, index=True)
    goal_id = Column(Integer, ForeignKey("savings_goals.id"), index=True)
    user_id = Column(String, index=True, nullable=False)
    amount = Column(Float, nullable=False)
    contribution_date = Column(Date, nullable=False)
    note = Column(String, nullable=True)

    goal = relationship("SavingsGoal", back_populates="contributions")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False)  # income, expense
    category = Column(String, index=True)
    transaction_date = Column(Date, nullable=False)
    description = Column(String, nullable=True)


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    category = Column(String, index=True, nullable=False)
    amount = Column(Float, nullable=False)
    spent = Column(Float, default=0.0)
    period = Column(String, default="monthly")  # weekly, monthly, yearly, custom
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # NULL = open-ended
    is_active = Column(Boolean, default=True)

    # Last threshold band observed by the alert engine (see services/alerts.py)
    alert_band = Column(Integer, default=0)

    alerts = relationship("BudgetAlert", back_populates="budget", cascade="all, delete-orphan")


class BudgetAlert(Base):
    __tablename__ = "budget_alerts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=True, index=True)
    goal_id = Column(Integer, ForeignKey("savings_goals.id"), nullable=True, index=True)
    alert_type = Column(String, nullable=False)  # approaching, exceeded, predicted_overspend, achievement
    threshold_percentage = Column(Float, default=0.0)
    current_spent = Column(Float, default=0.0)
    budget_amount = Column(Float, default=0.0)
    is_predicted = Column(Boolean, default=False)
    predicted_overspend_amount = Column(Float, nullable=True)
    ai_recommendation = Column(Text, nullable=True)
    triggered_at = Column(DateTime, nullable=False)
    acknowledged_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)

    budget = relationship("Budget", back_populates="alerts")


class MonthlySummary(Base):
    __tablename__ = "monthly_summary"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    month = Column(String, index=True, nullable=False)  # "YYYY-MM"
    income = Column(Float, default=0.0)
    expenses = Column(Float, default=0.0)
    net = Column(Float, default=0.0)


class GoalPrediction(Base):
    __tablename__ = "goal_predictions"

    id = Column(Integer, primary_key=True, index=True)
    goal_id = Column(Integer, ForeignKey("savings_goals.id"), index=True)
    user_id = Column(String, index=True, nullable=False)
    predicted_completion_date = Column(Date, nullable=False)
    confidence_score = Column(Float, nullable=False)
    recommended_monthly_amount = Column(Float, nullable=False)
    minimum_monthly_amount = Column(Float, nullable=False)
    monthly_projections = Column(JSON, default=list)
    ai_insights = Column(JSON, default=list)
    risk_factors = Column(JSON, default=list)
    opportunities = Column(JSON, default=list)
    model_version = Column(String)
    prediction_factors = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now, index=True)

    goal = relationship("SavingsGoal", back_populates="predictions")
