"""Handler wiring for the API process and the Celery worker.

The API process writes to the ``log`` table and the worker to ``worker_log``.
A logger never carries both: attaching the worker handler drops an API
handler that was attached earlier (e.g. a task module imported by the web app).
"""

from __future__ import annotations

import logging
from typing import Optional, Type

from flask import current_app, has_app_context


def _current_app_or_none():
    return current_app._get_current_object() if has_app_context() else None


def _ensure_handler(
    logger: logging.Logger,
    handler_cls: Type[logging.Handler],
    *,
    evict: Optional[Type[logging.Handler]] = None,
) -> logging.Handler:
    existing = None
    for handler in list(logger.handlers):
        if type(handler) is handler_cls:
            existing = handler
        elif evict is not None and type(handler) is evict:
            logger.removeHandler(handler)
            handler.close()

    if existing is None:
        existing = handler_cls(app=_current_app_or_none())
        existing.setLevel(logging.INFO)
        logger.addHandler(existing)

    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    return existing


def ensure_appdb_file_logging(logger: logging.Logger) -> None:
    """Attach the ``log`` table handler to *logger* once."""

    from core.db_log_handler import DBLogHandler

    _ensure_handler(logger, DBLogHandler)


def ensure_worker_db_logging(logger: logging.Logger) -> None:
    """Attach the ``worker_log`` table handler to *logger* once."""

    from core.db_log_handler import DBLogHandler, WorkerDBLogHandler

    _ensure_handler(logger, WorkerDBLogHandler, evict=DBLogHandler)


def setup_task_logging(logger_name: Optional[str] = None) -> logging.Logger:
    """Return the logger a Celery task should use.

    Under ``TESTING`` no database handler is attached.
    """

    from core.settings import settings

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    if not settings.testing:
        ensure_worker_db_logging(logger)
    return logger


def log_task_error(logger: logging.Logger, message: str, event: str, exc_info: bool = True, **extra_attrs):
    """Log a task failure; *extra_attrs* end up in the ``worker_log`` columns/extra."""

    logger.error(message, exc_info=exc_info, extra={"event": event, **extra_attrs})


def log_task_info(logger: logging.Logger, message: str, event: str, **extra_attrs):
    logger.info(message, extra={"event": event, **extra_attrs})


__all__ = [
    "ensure_appdb_file_logging",
    "ensure_worker_db_logging",
    "log_task_error",
    "log_task_info",
    "setup_task_logging",
]
