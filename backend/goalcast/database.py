from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL

# Create Async Engine
engine = create_async_engine(DATABASE_URL, echo=False, future=True)

# Create Async Session Factory
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()

# Dependency for Routes
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session

# Session factory for work that opens its own sessions (budget sweep)
def get_session_factory():
    return AsyncSessionLocal

# Helper to create tables (Run this once on startup)
async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
