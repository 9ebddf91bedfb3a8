"""Audit trail writes for ledger mutations."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog


async def log_audit(
    session: AsyncSession,
    user_id: str,
    entity: str,
    entity_id: Optional[str],
    action: str,
    details: Optional[dict[str, Any]] = None,
    remote_addr: Optional[str] = None,
) -> None:
    """Append an audit row inside the caller's open transaction."""

    await session.execute(
        insert(AuditLog).values(
            user_id=user_id,
            entity=entity,
            entity_id=entity_id,
            action=action,
            details=details,
            remote_addr=remote_addr,
        )
    )
