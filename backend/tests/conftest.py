"""
Shared fixtures: an in-memory SQLite store and a fixed clock.
"""
import os

# Environment must be set before goalcast is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["INTERNAL_API_TOKEN"] = "test-internal-token"

from datetime import date, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from goalcast import models
from goalcast.database import Base

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def today() -> date:
    return date(2024, 6, 15)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 15, 12, 0)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_goal(db):
    async def _make_goal(**kwargs) -> models.SavingsGoal:
        fields = {
            "user_id": USER_ID,
            "name": "Emergency fund",
            "target_amount": 12000.0,
            "current_amount": 0.0,
            "priority": 3,
            "status": "active",
        }
        fields.update(kwargs)
        goal = models.SavingsGoal(**fields)
        db.add(goal)
        await db.commit()
        return goal

    return _make_goal


@pytest.fixture
def make_budget(db):
    async def _make_budget(**kwargs) -> models.Budget:
        fields = {
            "user_id": USER_ID,
            "category": "Food",
            "amount": 1000.0,
            "spent": 0.0,
            "period": "monthly",
            "start_date": date(2024, 6, 1),
            "end_date": date(2024, 6, 30),
            "is_active": True,
            "alert_band": 0,
        }
        fields.update(kwargs)
        budget = models.Budget(**fields)
        db.add(budget)
        await db.commit()
        return budget

    return _make_budget


@pytest.fixture
def add_transaction(db):
    async def _add_transaction(amount, txn_date, type="expense", category="Food", user_id=USER_ID):
        txn = models.Transaction(
            user_id=user_id,
            amount=amount,
            type=type,
            category=category,
            transaction_date=txn_date,
        )
        db.add(txn)
        await db.commit()
        return txn

    return _add_transaction
