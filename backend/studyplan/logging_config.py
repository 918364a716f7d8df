import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root and telemetry logging from STUDYPLAN_* environment flags."""
    root_level = (level or os.getenv("STUDYPLAN_LOG_LEVEL", "INFO")).upper()
    telemetry_level = os.getenv("STUDYPLAN_TELEMETRY_LOG_LEVEL", "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DEFAULT_LOG_FORMAT},
                "telemetry": {"format": TELEMETRY_LOG_FORMAT},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
                "telemetry": {
                    "class": "logging.StreamHandler",
                    "formatter": "telemetry",
                },
            },
            "loggers": {
                "studyplan.telemetry": {
                    "handlers": ["telemetry"],
                    "level": telemetry_level,
                    "propagate": False,
                },
            },
            "root": {
                "handlers": ["default"],
                "level": root_level,
            },
        }
    )

    if os.getenv("STUDYPLAN_DEBUG_HTTP", "0") == "1":
        for name in ("httpx", "httpcore", "uvicorn.access"):
            logging.getLogger(name).setLevel(logging.DEBUG)
