from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import Identity, get_current_identity
from app.core.rate_limit import limiter
from app.schemas.message import MessageOut, MessageSendPayload, ParticipantOut
from app.services import messaging
from app.services.notifications import Notifier

router = APIRouter(tags=["messages"])


@router.post("/messages/send", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.MESSAGE_SEND_RATE)
async def send_message(
    payload: MessageSendPayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await messaging.send(
        session,
        notifier,
        identity,
        payload.campaign_id,
        payload.message,
        recipient_id=payload.recipient_id,
        is_broadcast=payload.is_broadcast,
        attachments=[a.model_dump() for a in payload.attachments],
    )


@router.get("/messages/campaign/{campaign_id}", response_model=List[MessageOut])
async def list_campaign_messages(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await messaging.list_messages(session, identity, campaign_id)


@router.get("/campaigns/{campaign_id}/participants", response_model=List[ParticipantOut])
async def list_campaign_participants(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    users = await messaging.participants(session, identity, campaign_id)
    return [ParticipantOut(id=user.id, name=user.name) for user in users]
