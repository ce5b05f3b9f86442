import logging
import os
import sys
from pathlib import Path
from typing import Optional

APP_LOGGER_NAME = "vantage"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Quieted to THIRD_PARTY_LOG_LEVEL; sqlalchemy.engine is left alone when SQL_ECHO is on
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic", "uvicorn.access", "httpx")


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the "vantage" logger tree.

    Levels come from APP_LOG_LEVEL and THIRD_PARTY_LOG_LEVEL, the optional
    file from LOG_FILE. Calling it again replaces the handlers.
    """
    level = level or os.getenv("APP_LOG_LEVEL", "INFO")
    log_file = log_file or os.getenv("LOG_FILE")
    app_level = getattr(logging, level.upper(), logging.INFO)
    quiet_level = getattr(logging, os.getenv("THIRD_PARTY_LOG_LEVEL", "WARNING").upper(), logging.WARNING)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(app_level)
    for handler in app_logger.handlers:
        handler.close()
    app_logger.handlers.clear()
    app_logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)

    sql_echo = os.getenv("SQL_ECHO", "false").lower() == "true"
    for name in QUIET_LOGGERS:
        if sql_echo and name == "sqlalchemy.engine":
            continue
        logging.getLogger(name).setLevel(quiet_level)

    return app_logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """Logger under the "vantage" tree; module names outside the package get prefixed."""
    if name == APP_LOGGER_NAME or name.startswith(f"{APP_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
