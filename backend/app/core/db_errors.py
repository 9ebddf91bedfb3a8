"""Shared helpers for database error handling."""

from __future__ import annotations

from typing import Any, NoReturn

from sqlalchemy import Select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import Conflict

MYSQL_LOCK_NOWAIT = 3572
MYSQL_DUP_ENTRY = 1062


def extract_error_code(exc: DBAPIError) -> tuple[int | None, str | None, str]:
    """Return ``(driver error code, sqlstate, lower-cased message)`` for ``exc``."""

    orig = getattr(exc, "orig", None)
    code = None
    if orig is not None and getattr(orig, "args", None):
        try:
            code = int(orig.args[0])
        except (TypeError, ValueError):
            code = None
    sqlstate = getattr(orig, "sqlstate", None)
    message = str(orig if orig is not None else exc).lower()
    return code, sqlstate, message


def raise_on_lock_conflict(exc: OperationalError) -> NoReturn:
    """Translate lock-nowait conflicts into a retryable ``Conflict``."""

    code, _, message = extract_error_code(exc)
    if code == MYSQL_LOCK_NOWAIT or "could not obtain lock" in message or "could not acquire" in message:
        raise Conflict("Resource is locked by another request. Please retry shortly.") from exc
    raise exc


def raise_on_duplicate(exc: IntegrityError, detail: str) -> NoReturn:
    """Translate unique-key violations into ``Conflict``; re-raise anything else."""

    code, _, message = extract_error_code(exc)
    if code == MYSQL_DUP_ENTRY or "unique" in message or "duplicate" in message:
        raise Conflict(detail) from exc
    raise exc


async def fetch_one_for_update(session: AsyncSession, stmt: Select[Any]) -> Any:
    """Execute ``stmt`` with a row lock, mapping lock conflicts to ``Conflict``."""

    try:
        result = await session.execute(
            stmt.with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
        )
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    return result.scalar_one_or_none()
