from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_session
from app.core.errors import Unauthorized
from app.core.logging import user_id_ctx_var
from app.core.security import decode_access_token
from app.models.user import User


@dataclass(frozen=True)
class Identity:
    """Resolved caller: who they are and which side of the marketplace they act for."""

    user_id: str
    role: str
    email: Optional[str] = None
    display_name: Optional[str] = None


async def get_current_identity(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Identity:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise Unauthorized("Not authenticated")
    payload = decode_access_token(auth.split(" ", 1)[1])
    user_id = payload["sub"]

    user = (
        await session.execute(select(User).where(User.id == user_id))
    ).scalar_one_or_none()
    if not user or not user.is_active:
        raise Unauthorized("User inactive or not found")
    if payload.get("role") and payload["role"] != user.role:
        raise Unauthorized("Role mismatch")

    request.state.user_id = user.id
    user_id_ctx_var.set(user.id)
    return Identity(
        user_id=user.id, role=user.role, email=user.email, display_name=user.name
    )
