# utils/logging.py

"""Logging helpers for the article pipeline."""

from __future__ import annotations

import logging
import logging.handlers
import os

import structlog
from rich.logging import RichHandler

from config import settings

logger = structlog.get_logger(__name__)


__all__ = ["setup_logging"]

_QUIET_LIBRARIES = ("httpx", "httpcore")


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)


def _file_handler(path: str) -> logging.Handler | None:
    """Rotating run log at ``path``; None when the path is unusable."""
    try:
        log_dir = os.path.dirname(path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            mode="a",
            encoding="utf-8",
        )
    except OSError as e:  # pragma: no cover - path issues
        logger.error("Error setting up file logger: %s", e)
        return None
    handler.setFormatter(_plain_formatter())
    return handler


def _console_handler() -> logging.Handler:
    if settings.ENABLE_RICH_LOGGING:
        return RichHandler(
            level=settings.LOG_LEVEL_STR,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
            show_time=True,
            show_level=True,
        )
    handler = logging.StreamHandler()
    handler.setFormatter(_plain_formatter())
    return handler


def setup_logging() -> None:
    """Configure structlog and standard logging, then report the run settings."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.LOG_LEVEL_STR)

    file_handler = _file_handler(settings.LOG_FILE) if settings.LOG_FILE else None
    if file_handler is not None:
        root_logger.addHandler(file_handler)
    root_logger.addHandler(_console_handler())

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    log = structlog.get_logger()
    log.info(
        "Article pipeline logging setup complete.",
        log_level=logging.getLevelName(settings.LOG_LEVEL_STR),
        log_file=settings.LOG_FILE if file_handler is not None else None,
        console="rich" if settings.ENABLE_RICH_LOGGING else "plain",
        job_store_dir=settings.JOB_STORE_DIR,
        model=settings.GENERATION_MODEL,
        max_attempts=settings.MAX_STAGE_ATTEMPTS,
        workers=settings.WORKER_CONCURRENCY,
    )
