"""Logging for the items API.

structlog renders, the stdlib root logger writes. Request middleware binds
trace id, route and caller through contextvars so every record of a request
carries them.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

from config import get_settings

LOG_FILE = "items_api.log"
STRUCTURED_ENVIRONMENTS = ("production", "staging")

_LEVELS = {"production": "INFO", "staging": "INFO", "development": "DEBUG", "test": "WARNING"}

_configured = False


def _level(environment: str) -> str:
    return os.getenv("LOG_LEVEL", _LEVELS.get(environment, "INFO")).upper()


def _handlers(level: str) -> list:
    console = logging.StreamHandler(sys.stdout)

    # Errors only go to the file; the console already shows everything.
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    errors = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    errors.setLevel(logging.ERROR)

    console.setLevel(level)
    return [console, errors]


def _renderers(environment: str) -> list:
    if environment in STRUCTURED_ENVIRONMENTS:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
        )
    ]


def configure_logging() -> None:
    """Idempotent; the app calls it on import."""
    global _configured
    if _configured:
        return

    environment = get_settings().environment
    level = _level(environment)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(level)
    for noisy in ("urllib3", "pymongo"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *_renderers(environment),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
