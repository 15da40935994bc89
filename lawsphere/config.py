import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# "development", "staging" or "production"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lawsphere.db")

# Firebase Configuration (ID tokens are issued by the frontend's Firebase Auth)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Redis is optional: cache misses and memory-only rate limiting without it
REDIS_URL = os.getenv("REDIS_URL")
REDIS_RETRY_BACKOFF_SECONDS = int(os.getenv("REDIS_RETRY_BACKOFF_SECONDS", "30"))

# Frontend base URL and CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000"
    ).split(",")
    if origin.strip()
]

# Real-time forum notifications are switched off in production deployments
REALTIME_ENABLED = (
    os.getenv("REALTIME_ENABLED", "false" if IS_PRODUCTION else "true").lower() == "true"
)

# Community forum
CATEGORY_CACHE_TTL = int(os.getenv("CATEGORY_CACHE_TTL", "300"))
DEFAULT_AVATAR = os.getenv("DEFAULT_AVATAR", "/lawyer.png")
TOPICS_PAGE_SIZE = int(os.getenv("TOPICS_PAGE_SIZE", "20"))
TOPICS_MAX_PAGE_SIZE = int(os.getenv("TOPICS_MAX_PAGE_SIZE", "100"))

# Consultation completion sweep (ARQ cron), minutes between runs
CONSULTATION_SWEEP_INTERVAL_MINUTES = int(os.getenv("CONSULTATION_SWEEP_INTERVAL_MINUTES", "15"))
