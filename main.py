# main.py
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError

from app.routers import (
    complaint_router,
    category_router,
    assignment_router,
    escalation_router,
    report_router,
    activity_router,
)

from app.core.config import APP_ENV, ENABLE_SCHEDULER
from app.core.db import init_models
from app.core.scheduler import EscalationScheduler
from app.core.exceptions import AppException
from app.core.logging import setup_logging
from app.middleware.request_logging import request_logging_middleware
from app.core.error_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    integrity_error_handler,
    unhandled_exception_handler,
)

# ------------------------------------------------------------------------------
# ENV CONFIG
# ------------------------------------------------------------------------------
APP_NAME = "Complaint Deadline & Escalation API"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
ALLOWED_ORIGINS = os.getenv("CORS_ORIGINS", "").split(",")

# ------------------------------------------------------------------------------
# LOGGING
# ------------------------------------------------------------------------------
setup_logging()
logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# LIFESPAN
# ------------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting application")

    # ✅ DB init ONLY in development
    if APP_ENV == "development":
        await init_models()
        logger.info("📦 Database models initialized (development)")
    else:
        logger.info("📦 %s mode: init_models() skipped", APP_ENV)

    scheduler = EscalationScheduler(deferred_checks=ENABLE_SCHEDULER)
    app.state.escalation_scheduler = scheduler

    if ENABLE_SCHEDULER:
        scheduler.start()
        logger.info("🕒 Escalation scheduler started (%s)", APP_ENV)
    else:
        logger.info("🕒 Escalation scheduler disabled (%s)", APP_ENV)

    yield

    logger.info("🛑 Shutting down application")
    scheduler.shutdown()

# ------------------------------------------------------------------------------
# APP INIT
# ------------------------------------------------------------------------------
app = FastAPI(
    title=APP_NAME,
    description="Complaint deadlines, escalation scheduling, workload-based assignment and reporting",
    version=APP_VERSION,
    docs_url="/docs" if APP_ENV != "production" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ------------------------------------------------------------------------------
# EXCEPTION HANDLERS
# ------------------------------------------------------------------------------
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# ------------------------------------------------------------------------------
# MIDDLEWARE
# ------------------------------------------------------------------------------
app.middleware("http")(request_logging_middleware)

origins = [o.strip() for o in ALLOWED_ORIGINS if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------------------
# HEALTH CHECK
# ------------------------------------------------------------------------------
@app.get("/", tags=["Health"])
async def health_check():
    scheduler = getattr(app.state, "escalation_scheduler", None)
    return {
        "status": "ok",
        "service": "complaint-escalation-api",
        "environment": APP_ENV,
        "version": APP_VERSION,
        "scheduler_active": scheduler.active if scheduler else False,
    }

# ------------------------------------------------------------------------------
# ROUTERS
# ------------------------------------------------------------------------------
app.include_router(complaint_router)
app.include_router(category_router)
app.include_router(assignment_router)
app.include_router(escalation_router)
app.include_router(report_router)
app.include_router(activity_router)
