"""Per-campaign messaging channel with direct and broadcast delivery."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import ledger_transaction
from app.core.deps import Identity
from app.core.errors import Forbidden, InvalidInput
from app.models.application import ApplicationStatus, CampaignApplication
from app.models.message import Message, MessageRecipient
from app.models.user import User, UserRole
from app.services.access import Capability, CampaignAccess, resolve_campaign_access
from app.services.notifications import (
    NotificationEvent,
    NotificationType,
    Notifier,
    preview,
)
from app.utils.clock import utcnow


async def accepted_creator_ids(session: AsyncSession, campaign_id: str) -> list[str]:
    return list(
        (
            await session.execute(
                select(CampaignApplication.creator_id)
                .where(
                    CampaignApplication.campaign_id == campaign_id,
                    CampaignApplication.status == ApplicationStatus.ACCEPTED.value,
                )
                .order_by(CampaignApplication.created_at)
            )
        ).scalars().all()
    )


def _validate_body(body: str) -> None:
    if not body or not body.strip():
        raise InvalidInput("Message body cannot be empty")
    if len(body) > settings.MESSAGE_MAX_CHARS:
        raise InvalidInput(f"Message body exceeds {settings.MESSAGE_MAX_CHARS} characters")


async def _resolve_recipient(
    session: AsyncSession, access: CampaignAccess, recipient_id: Optional[str]
) -> str:
    sender_id = access.identity.user_id
    if not recipient_id:
        if access.has(Capability.CAMPAIGN_OWNER):
            raise InvalidInput("A recipient is required for direct messages")
        return access.campaign.brand_id
    if recipient_id == sender_id:
        raise InvalidInput("You cannot message yourself")
    if recipient_id == access.campaign.brand_id:
        return recipient_id
    if recipient_id in await accepted_creator_ids(session, access.campaign.id):
        return recipient_id
    raise InvalidInput("Recipient is not a participant in this campaign")


async def _write_recipient_rows(
    session: AsyncSession, message_id: str, recipient_ids: Sequence[str]
) -> bool:
    try:
        async with ledger_transaction(session):
            session.add_all(
                MessageRecipient(message_id=message_id, recipient_id=rid) for rid in recipient_ids
            )
    except Exception:
        logger.bind(message_id=message_id, recipients=len(recipient_ids)).exception(
            "broadcast_recipients_failed"
        )
        return False
    return True


async def send(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    campaign_id: str,
    body: str,
    recipient_id: Optional[str] = None,
    is_broadcast: bool = False,
    attachments: Optional[list[dict[str, Any]]] = None,
) -> Message:
    """Post a message to the campaign channel.

    Broadcasts go to the creators accepted at send time. Their read-receipt
    rows are written after the message itself commits, so a failure there
    leaves the message in place without recipients.
    """

    async with ledger_transaction(session):
        access = await resolve_campaign_access(session, identity, campaign_id)
        access.require(Capability.CHANNEL_PARTICIPANT, "You do not have access to this campaign")
        _validate_body(body)
        if is_broadcast and not access.has(Capability.CAMPAIGN_OWNER):
            raise Forbidden("Only the brand can send broadcast messages")

        if is_broadcast:
            target = None
            audience = await accepted_creator_ids(session, campaign_id)
        else:
            target = await _resolve_recipient(session, access, recipient_id)
            audience = [target]

        message = Message(
            campaign_id=campaign_id,
            sender_id=identity.user_id,
            recipient_id=target,
            body=body,
            is_broadcast=is_broadcast,
            attachments=attachments or [],
        )
        session.add(message)
        await session.flush()

        sender = await session.get(User, identity.user_id)
        context = {
            "campaign_title": access.campaign.title,
            "sender_name": sender.name if sender else "User",
            "preview": preview(body),
        }

    message_id = message.id
    log = logger.bind(campaign_id=campaign_id, message_id=message_id)
    if is_broadcast:
        log.bind(recipients=len(audience)).info("broadcast_sent")
        if audience and not await _write_recipient_rows(session, message_id, audience):
            await session.refresh(message)
        kind = NotificationType.MESSAGE_BROADCAST
    else:
        log.bind(recipient_id=target).info("direct_message_sent")
        kind = NotificationType.MESSAGE_DIRECT

    data = {
        "campaign_id": campaign_id,
        "message_id": message_id,
        "sender_id": identity.user_id,
        "is_broadcast": is_broadcast,
    }
    await notifier.publish(
        [NotificationEvent(kind, rid, dict(context), data) for rid in audience]
    )
    return message


async def list_messages(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> list[Message]:
    """Messages visible to the caller, oldest first; marks the caller's unread ones read.

    Returned rows carry the read flags as they were before this view.
    """

    access = await resolve_campaign_access(session, identity, campaign_id)
    access.require(Capability.CHANNEL_PARTICIPANT, "You do not have access to this campaign")
    me = identity.user_id

    stmt = select(Message).where(Message.campaign_id == campaign_id)
    if not access.has(Capability.CAMPAIGN_OWNER):
        stmt = stmt.where(
            or_(
                Message.sender_id == me,
                and_(Message.is_broadcast.is_(False), Message.recipient_id == me),
                and_(
                    Message.is_broadcast.is_(True),
                    select(MessageRecipient.id)
                    .where(
                        MessageRecipient.message_id == Message.id,
                        MessageRecipient.recipient_id == me,
                    )
                    .exists(),
                ),
            )
        )
    messages = list(
        (await session.execute(stmt.order_by(Message.created_at, Message.id))).scalars().all()
    )

    direct = await session.execute(
        update(Message)
        .where(
            Message.campaign_id == campaign_id,
            Message.recipient_id == me,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    broadcast = await session.execute(
        update(MessageRecipient)
        .where(
            MessageRecipient.recipient_id == me,
            MessageRecipient.is_read.is_(False),
            MessageRecipient.message_id.in_(
                select(Message.id).where(Message.campaign_id == campaign_id)
            ),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    marked = (direct.rowcount or 0) + (broadcast.rowcount or 0)
    if marked:
        logger.bind(campaign_id=campaign_id, marked=marked).info("messages_marked_read")
    return messages


async def participants(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> list[User]:
    """Accepted creators on the campaign (owner only)."""

    access = await resolve_campaign_access(session, identity, campaign_id)
    access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can view participants")
    return list(
        (
            await session.execute(
                select(User)
                .join(CampaignApplication, CampaignApplication.creator_id == User.id)
                .where(
                    CampaignApplication.campaign_id == campaign_id,
                    CampaignApplication.status == ApplicationStatus.ACCEPTED.value,
                    User.role == UserRole.CREATOR.value,
                )
                .order_by(CampaignApplication.created_at)
            )
        ).scalars().all()
    )
