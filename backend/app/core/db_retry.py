"""Retry ledger mutations that hit transient deadlocks or lock-wait timeouts."""

from __future__ import annotations

import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db_errors import MYSQL_LOCK_NOWAIT, extract_error_code

T = TypeVar("T")
MYSQL_RETRIABLE_ERROR_CODES = {1205, 1213, MYSQL_LOCK_NOWAIT}
RETRIABLE_SQLSTATES = {"40001", "40P01"}


def is_retriable(exc: DBAPIError) -> bool:
    code, sqlstate, message = extract_error_code(exc)
    if code == MYSQL_LOCK_NOWAIT and settings.DB_NOWAIT_LOCKS:
        return False  # NOWAIT conflicts surface as Conflict instead
    if code in MYSQL_RETRIABLE_ERROR_CODES or sqlstate in RETRIABLE_SQLSTATES:
        return True
    return any(
        marker in message
        for marker in ("deadlock", "lock wait timeout", "database is locked")
    )


async def with_db_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
) -> T:
    """Run ``operation`` until it succeeds or a non-transient error occurs.

    ``operation`` must open its own transaction so that a retry replays the
    whole unit of work from scratch.
    """

    attempts = attempts or settings.DB_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            if attempt == attempts or not is_retriable(exc):
                raise
            await session.rollback()
            sleep_for = settings.DB_RETRY_BASE_DELAY * (2 ** (attempt - 1)) + random.uniform(
                0, settings.DB_RETRY_JITTER
            )
            logger.bind(
                attempt=attempt,
                max_attempts=attempts,
                sleep=sleep_for,
                error=str(exc),
            ).warning("db_retry_deadlock")
            await asyncio.sleep(sleep_for)
    raise RuntimeError("with_db_retry called with no attempts")


def retry_on_deadlock(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Decorate a service coroutine whose first argument is the session."""

    @functools.wraps(func)
    async def wrapper(session: AsyncSession, *args: Any, **kwargs: Any) -> T:
        return await with_db_retry(session, lambda: func(session, *args, **kwargs))

    return wrapper
