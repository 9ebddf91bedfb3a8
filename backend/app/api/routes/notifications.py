import secrets

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_dispatcher
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import Identity, get_current_identity
from app.core.errors import Unauthorized
from app.schemas.notification import (
    MarkReadOut,
    MarkReadPayload,
    NotificationListOut,
    NotificationPreferences,
    NotificationPreferencesPayload,
    ScheduledNudgesOut,
)
from app.services import notifications
from app.services.notifications import NotificationDispatcher

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=NotificationListOut)
async def list_notifications(
    unread: bool = False,
    limit: int = 20,
    offset: int = 0,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    items, unread_count = await notifications.list_for_user(
        session,
        identity.user_id,
        unread_only=unread,
        limit=max(1, min(limit, 100)),
        offset=max(0, offset),
    )
    return {"items": items, "unread_count": unread_count}


@router.put("/notifications", response_model=MarkReadOut)
async def mark_notifications_read(
    payload: MarkReadPayload,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    updated = await notifications.mark_read(session, identity.user_id, payload.notification_ids)
    return {"updated": updated}


@router.get("/user/notification-preferences", response_model=NotificationPreferences)
async def get_notification_preferences(
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await notifications.get_preferences(session, identity.user_id)


@router.put("/user/notification-preferences", response_model=NotificationPreferences)
async def update_notification_preferences(
    payload: NotificationPreferencesPayload,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await notifications.update_preferences(
        session, identity.user_id, payload.model_dump(exclude_unset=True)
    )


@router.post("/notifications/scheduled", response_model=ScheduledNudgesOut)
async def run_scheduled_notifications(
    request: Request,
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cron entry point; authenticated with ``Bearer <CRON_SECRET>``."""

    expected = f"Bearer {settings.CRON_SECRET}" if settings.CRON_SECRET else None
    supplied = request.headers.get("Authorization") or ""
    if not expected or not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise Unauthorized("Invalid cron credentials")
    return await notifications.run_scheduled_nudges(session, dispatcher)
