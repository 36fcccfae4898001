import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

# Database: a full URL wins, otherwise build the asyncpg URL from parts
DB_USER = os.getenv("DB_USER")
DB_PASS = os.getenv("DB_PASS")
DB_HOST = os.getenv("PG_HOST")
DB_NAME = os.getenv("DB_NAME")
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASS}@{DB_HOST}/{DB_NAME}",
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# Narrative (Gemini) service
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
NARRATIVE_TIMEOUT_SECONDS = float(os.getenv("NARRATIVE_TIMEOUT_SECONDS", "20"))
NARRATIVE_MAX_RETRIES = int(os.getenv("NARRATIVE_MAX_RETRIES", "1"))
NARRATIVE_RETRY_BACKOFF_SECONDS = float(os.getenv("NARRATIVE_RETRY_BACKOFF_SECONDS", "1.5"))

# Forecast windows
CONTRIBUTION_LOOKBACK_MONTHS = 12
FINANCIAL_LOOKBACK_DAYS = 180
FINANCIAL_WINDOW_MONTHS = 6
HISTORY_MONTHS = 6

# Monthly velocity used when there is no behavioral signal at all
DEFAULT_MONTHLY_VELOCITY = float(os.getenv("DEFAULT_MONTHLY_VELOCITY", "1000"))

STATISTICAL_MODEL_VERSION = "statistical-v1"

# Shared secret for scheduled internal callers (the budget sweep)
INTERNAL_API_TOKEN = os.getenv("INTERNAL_API_TOKEN")
