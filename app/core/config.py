# app/core/config.py

import os
from dotenv import load_dotenv
from app.utils.logger import get_logger

logger = get_logger(__name__)

load_dotenv()

# =====================================================
# APPLICATION
# =====================================================
APP_ENV = os.getenv("APP_ENV", "development")
if APP_ENV not in {"development", "staging", "production"}:
    raise ValueError("APP_ENV must be development | staging | production")

IS_PRODUCTION = APP_ENV == "production"

# =====================================================
# DATABASE
# =====================================================
DB_TYPE = os.getenv("DB_TYPE", "sqlite")
if DB_TYPE not in {"postgres", "sqlite"}:
    raise ValueError("DB_TYPE must be postgres | sqlite")

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres")

elif DB_TYPE == "sqlite":
    if IS_PRODUCTION:
        raise ValueError("SQLite is NOT allowed in production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./complaints.db")

# ---- Pool tuning (safe defaults) ----
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_ECHO_POOL = os.getenv("DB_ECHO_POOL", "false").lower() == "true"

# ---- SSL ----
DB_SSL_VERIFY = os.getenv("DB_SSL_VERIFY", "true").lower() == "true"
if IS_PRODUCTION and not DB_SSL_VERIFY:
    logger.warning("Running in production with relaxed SSL verification")

# =====================================================
# JWT / AUTH
# =====================================================
JWT_ACCESS_SECRET_KEY = os.getenv("JWT_ACCESS_SECRET_KEY")
if not JWT_ACCESS_SECRET_KEY:
    if IS_PRODUCTION:
        raise ValueError("JWT_ACCESS_SECRET_KEY must be set")
    JWT_ACCESS_SECRET_KEY = "dev-secret-key-change-in-production"
    logger.warning("JWT_ACCESS_SECRET_KEY not set, using development key")

JWT_ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15)
)

# =====================================================
# ESCALATION SCHEDULER
# =====================================================
ENABLE_SCHEDULER = os.getenv(
    "ENABLE_SCHEDULER", "false" if IS_PRODUCTION else "true"
).lower() == "true"

ESCALATION_CHECK_INTERVAL_MINUTES = int(
    os.getenv("ESCALATION_CHECK_INTERVAL_MINUTES", 60)
)
ESCALATION_MIN_INTERVAL_MINUTES = int(
    os.getenv("ESCALATION_MIN_INTERVAL_MINUTES", 5)
)
ESCALATION_MAX_INTERVAL_MINUTES = int(
    os.getenv("ESCALATION_MAX_INTERVAL_MINUTES", 1440)
)
if not (
    ESCALATION_MIN_INTERVAL_MINUTES
    <= ESCALATION_CHECK_INTERVAL_MINUTES
    <= ESCALATION_MAX_INTERVAL_MINUTES
):
    raise ValueError(
        "ESCALATION_CHECK_INTERVAL_MINUTES must be between "
        f"{ESCALATION_MIN_INTERVAL_MINUTES} and {ESCALATION_MAX_INTERVAL_MINUTES}"
    )

# Lookahead window for the at-risk query
ESCALATION_BUFFER_HOURS = float(os.getenv("ESCALATION_BUFFER_HOURS", 1))

SCHEDULER_RESTART_DELAY_SECONDS = float(
    os.getenv("SCHEDULER_RESTART_DELAY_SECONDS", 2)
)
COMPLAINT_CHECK_DELAY_MINUTES = int(
    os.getenv("COMPLAINT_CHECK_DELAY_MINUTES", 5)
)

# =====================================================
# DEADLINES
# =====================================================
DEFAULT_RESOLUTION_HOURS = {
    "low": float(os.getenv("DEFAULT_RESOLUTION_HOURS_LOW", 72)),
    "medium": float(os.getenv("DEFAULT_RESOLUTION_HOURS_MEDIUM", 48)),
    "high": float(os.getenv("DEFAULT_RESOLUTION_HOURS_HIGH", 24)),
    "urgent": float(os.getenv("DEFAULT_RESOLUTION_HOURS_URGENT", 12)),
}

# =====================================================
# WORKLOAD SCORING
# =====================================================
RECOMMENDATION_SCORE_THRESHOLD = float(
    os.getenv("RECOMMENDATION_SCORE_THRESHOLD", 5)
)
ADMIN_SCORE_BONUS = float(os.getenv("ADMIN_SCORE_BONUS", 0.5))

# Staff in this department can take complaints from any category
GENERAL_DEPARTMENT = os.getenv("GENERAL_DEPARTMENT", "General")
