"""Logging setup for the trender service.

Everything goes to stdout through one handler: readable lines in
development, JSON records (python-json-logger) when ``ENVIRONMENT`` is
``production``. SQL statements are logged at INFO when ``DATABASE_ECHO``
is set, in place of SQLAlchemy's own echo handler.
"""
import logging
import logging.config
import sys
from typing import Any, Dict

from .settings import Settings, get_settings

CONSOLE_FORMAT = "%(asctime)s [{service}] [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Libraries the service drives; httpx logs every request at INFO
LIBRARY_LOG_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
}


def get_logging_config(service_name: str = "trendbot", config: Settings = None) -> Dict[str, Any]:
    """Build the dictConfig for *service_name* from settings."""
    config = config or get_settings()
    production = config.environment == "production"

    loggers = {
        name: {"level": level, "handlers": ["console"], "propagate": False}
        for name, level in LIBRARY_LOG_LEVELS.items()
    }
    loggers["sqlalchemy.engine"] = {
        "level": "INFO" if config.database_echo else "WARNING",
        "handlers": ["console"],
        "propagate": False,
    }
    loggers["trendbot"] = {"level": config.log_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "fmt": JSON_FORMAT,
                "static_fields": {"service": service_name},
            },
            "console": {
                "format": CONSOLE_FORMAT.format(service=service_name),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if production else "console",
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging(service_name: str = "trendbot", config: Settings = None) -> None:
    """Apply :func:`get_logging_config`."""
    logging.config.dictConfig(get_logging_config(service_name, config))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
