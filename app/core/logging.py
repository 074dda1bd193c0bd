import sys
from logging.config import dictConfig
from app.core.config import APP_ENV

LOG_LEVEL = "DEBUG" if APP_ENV == "development" else "INFO"


def setup_logging():
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,

            # -----------------
            # FORMATTERS
            # -----------------
            "formatters": {
                "default": {
                    "format": (
                        "%(asctime)s | %(levelname)s | "
                        "%(name)s | %(message)s"
                    ),
                },
                "access": {
                    "format": (
                        "%(asctime)s | ACCESS | "
                        "%(client_addr)s | user=%(user_id)s | %(method)s | "
                        "%(path)s | %(status_code)s | "
                        "%(process_time_ms)sms"
                    ),
                },
            },

            # -----------------
            # HANDLERS
            # -----------------
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
                "access_console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "access",
                },
            },

            # -----------------
            # LOGGERS
            # -----------------
            "loggers": {
                # Used by request_logging_middleware
                "access": {
                    "handlers": ["access_console"],
                    "level": LOG_LEVEL,
                    "propagate": False,
                },
                # Job execution chatter; our own scheduler logs the outcome
                "apscheduler": {
                    "level": "WARNING",
                },
                "sqlalchemy.engine": {
                    "level": "WARNING",
                },
                # Sweeps and escalations stay visible in every environment
                "app.core.scheduler": {
                    "level": "INFO",
                },
                "app.services.support.escalation_service": {
                    "level": "INFO",
                },
                # The access logger above already records every request
                "uvicorn.access": {
                    "level": "WARNING",
                },
            },

            # -----------------
            # ROOT LOGGER
            # -----------------
            "root": {
                "level": LOG_LEVEL,
                "handlers": ["console"],
            },
        }
    )
