"""Async database session management helpers."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # SQLite pools reject the sizing knobs and the MySQL isolation level.
        return {"echo": settings.DEBUG}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "isolation_level": settings.DB_ISOLATION_LEVEL,
        "echo": settings.DEBUG,
    }


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL)
)

SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""

    async with SessionLocal() as session:
        yield session


async def create_all() -> None:
    """Create any missing tables (local development)."""

    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def ledger_transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run the enclosed block in a single DB transaction.

    On MySQL the transaction runs at REPEATABLE READ with a bounded lock wait
    so uniqueness checks and ``FOR UPDATE`` reads see a stable snapshot.
    """

    if session.in_transaction():
        pending = len(session.new) + len(session.dirty) + len(session.deleted)
        if pending:
            logger.bind(pending=pending).warning("ledger_discarded_unflushed_changes")
        await session.rollback()

    async with session.begin():
        if session.bind is not None and session.bind.dialect.name == "mysql":
            # Isolation must be chosen before the first statement of the transaction.
            await session.connection(
                execution_options={"isolation_level": "REPEATABLE READ"}
            )
            await session.execute(
                text(
                    f"SET SESSION innodb_lock_wait_timeout = {settings.INNODB_LOCK_WAIT_TIMEOUT_SEC}"
                )
            )
        yield session
