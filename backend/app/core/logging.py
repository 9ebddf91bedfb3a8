"""Loguru setup shared by the API process and the cron scripts."""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

from loguru import logger

from app.core.config import settings

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")

# Libraries that log through the standard logging module.
_ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine")
_QUIET_LOGGERS = ("aiomysql", "aiosqlite", "urllib3")


class InterceptHandler(logging.Handler):
    """Forward standard ``logging`` records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(logger_name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def _with_context(record: dict[str, Any]) -> None:
    extra = record["extra"]
    extra.setdefault("request_id", request_id_ctx_var.get())
    extra.setdefault("user_id", user_id_ctx_var.get())


def setup_logging(level: str | None = None) -> None:
    """Install one stdout sink; JSON lines unless ``LOG_JSON`` is off."""

    level = (level or settings.LOG_LEVEL).upper()
    logger.remove()
    logger.configure(patcher=_with_context)
    logger.add(
        sys.stdout,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        serialize=settings.LOG_JSON,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in _ROUTED_LOGGERS:
        std = logging.getLogger(name)
        std.handlers = [InterceptHandler()]
        std.propagate = False
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
