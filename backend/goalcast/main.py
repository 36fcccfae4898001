import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .database import init_db
from .logging_config import setup_logging
from .routers import budgets, goals, summaries

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Server starting... checking tables.")
    await init_db()
    yield
    logger.info("Server shutting down.")

app = FastAPI(title="Goalcast API", lifespan=lifespan)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register Routers
app.include_router(goals.router)
app.include_router(budgets.router)
app.include_router(summaries.router)

@app.get("/")
def read_root():
    return {"status": "API is running"}
