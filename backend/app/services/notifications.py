"""Notification fan-out: in-app rows, templated email, preferences and nudges.

Ledger and messaging operations describe what happened as
:class:`NotificationEvent` values and hand them to a :class:`Notifier` after
their transaction commits. The :class:`NotificationDispatcher` turns each
event into one in-app ``Notification`` row and, when the recipient's
preferences allow it, one templated email. Delivery is best-effort: every
failure is logged and swallowed so it can never undo the operation that
produced the event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Sequence

from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models.application import CampaignApplication
from app.models.campaign import Campaign, CampaignStatus
from app.models.notification import Notification, UserNotificationSettings
from app.models.user import User, UserRole
from app.services.email_gateway import EmailGateway, EmailTemplate
from app.utils.clock import utcnow


class NotificationType(str, Enum):
    APPLICATION_CREATED = "application_created"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"
    SUBMISSION_CREATED = "submission_created"
    SUBMISSION_UPDATED = "submission_updated"
    SUBMISSION_APPROVED = "submission_approved"
    SUBMISSION_REJECTED = "submission_rejected"
    MESSAGE_DIRECT = "message_direct"
    MESSAGE_BROADCAST = "message_broadcast"
    CAMPAIGN_COMPLETED = "campaign_completed"
    BRAND_CAMPAIGN_BOOST_REMINDER = "brand_campaign_boost_reminder"
    CREATOR_NUDGE_FIRST_APPLICATION = "creator_nudge_first_application"
    BRAND_NUDGE_CAMPAIGN_CREATION = "brand_nudge_campaign_creation"


# Preference flags on UserNotificationSettings.
PREF_CAMPAIGN_UPDATES = "email_campaign_updates"
PREF_CREATOR_MESSAGES = "email_creator_messages"
PREF_PAYMENT_ALERTS = "email_payment_alerts"
PREF_WEEKLY_REPORTS = "email_weekly_reports"
PREF_MARKETING_EMAILS = "email_marketing_emails"

DEFAULT_PREFERENCES: dict[str, bool] = {
    PREF_CAMPAIGN_UPDATES: True,
    PREF_CREATOR_MESSAGES: True,
    PREF_PAYMENT_ALERTS: True,
    PREF_WEEKLY_REPORTS: False,
    PREF_MARKETING_EMAILS: False,
}

ANY_ROLE = "*"


@dataclass(frozen=True)
class RoleCopy:
    title: str
    message: str
    email: Optional[EmailTemplate] = None


@dataclass(frozen=True)
class EventDescriptor:
    copy: Mapping[str, RoleCopy]
    preference: Optional[str] = None

    def for_role(self, role: str) -> RoleCopy:
        return self.copy.get(role) or self.copy[ANY_ROLE]


EVENT_REGISTRY: dict[NotificationType, EventDescriptor] = {
    NotificationType.APPLICATION_CREATED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "New application for {campaign_title}",
                '{creator_name} applied to "{campaign_title}".',
                EmailTemplate.BRAND_CREATOR_APPLIED,
            )
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.APPLICATION_SUBMITTED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Application sent",
                'Your application to "{campaign_title}" was sent to {brand_name}.',
                EmailTemplate.CREATOR_APPLICATION_CONFIRMATION,
            )
        },
    ),
    NotificationType.APPLICATION_ACCEPTED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Application accepted",
                'Your application for "{campaign_title}" has been accepted.',
                EmailTemplate.CREATOR_ACCEPTED_TO_CAMPAIGN,
            )
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.APPLICATION_REJECTED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Application rejected",
                'Your application for "{campaign_title}" has been rejected.',
            )
        },
    ),
    NotificationType.SUBMISSION_CREATED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "New submission from {creator_name}",
                '{creator_name} submitted content for "{campaign_title}".',
                EmailTemplate.BRAND_CONTENT_SUBMITTED,
            )
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.SUBMISSION_UPDATED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Submission updated by {creator_name}",
                '{creator_name} resubmitted content for "{campaign_title}".',
                EmailTemplate.BRAND_CONTENT_SUBMITTED,
            )
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.SUBMISSION_APPROVED: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Submission approved by {brand_name}",
                'Your submission for "{campaign_title}" has been approved!',
                EmailTemplate.CREATOR_CONTENT_APPROVED,
            )
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.SUBMISSION_REJECTED: EventDescriptor(
        {ANY_ROLE: RoleCopy("Submission needs revision", "{rejection_note}")},
    ),
    NotificationType.MESSAGE_DIRECT: EventDescriptor(
        {
            UserRole.BRAND.value: RoleCopy(
                "New message from {sender_name}",
                "{preview}",
                EmailTemplate.BRAND_MESSAGE_RECEIVED,
            ),
            ANY_ROLE: RoleCopy(
                "New message from {sender_name}",
                "{preview}",
                EmailTemplate.CREATOR_MESSAGE_RECEIVED,
            ),
        },
        PREF_CREATOR_MESSAGES,
    ),
    NotificationType.MESSAGE_BROADCAST: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "New broadcast from {campaign_title}",
                "{preview}",
                EmailTemplate.CREATOR_MESSAGE_RECEIVED,
            )
        },
        PREF_CREATOR_MESSAGES,
    ),
    NotificationType.CAMPAIGN_COMPLETED: EventDescriptor(
        {
            UserRole.BRAND.value: RoleCopy(
                "Content ready from {creator_name}",
                '{creator_name} has delivered everything for "{campaign_title}".',
                EmailTemplate.BRAND_CAMPAIGN_COMPLETED,
            ),
            ANY_ROLE: RoleCopy(
                "Campaign complete",
                'All your content for "{campaign_title}" has been approved. Great job!',
                EmailTemplate.CREATOR_CAMPAIGN_COMPLETED,
            ),
        },
        PREF_CAMPAIGN_UPDATES,
    ),
    NotificationType.BRAND_CAMPAIGN_BOOST_REMINDER: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Get more creators on {campaign_title}",
                '"{campaign_title}" has no applicants yet. Share it or refresh the brief.',
                EmailTemplate.BRAND_CAMPAIGN_BOOST_REMINDER,
            )
        },
    ),
    NotificationType.CREATOR_NUDGE_FIRST_APPLICATION: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Start applying to campaigns",
                "Browse active campaigns and send your first application.",
                EmailTemplate.CREATOR_NUDGE_FIRST_APPLICATION,
            )
        },
    ),
    NotificationType.BRAND_NUDGE_CAMPAIGN_CREATION: EventDescriptor(
        {
            ANY_ROLE: RoleCopy(
                "Launch your first campaign",
                "Create a campaign to start receiving applications from creators.",
                EmailTemplate.BRAND_NUDGE_CAMPAIGN_CREATION,
            )
        },
    ),
}

EMAIL_SUBJECTS: dict[EmailTemplate, str] = {
    EmailTemplate.BRAND_CREATOR_APPLIED: '{creator_name} Applied to "{campaign_title}"',
    EmailTemplate.CREATOR_APPLICATION_CONFIRMATION: 'You Applied to "{campaign_title}"',
    EmailTemplate.CREATOR_ACCEPTED_TO_CAMPAIGN: 'You\'ve Been Selected for "{campaign_title}"',
    EmailTemplate.BRAND_CONTENT_SUBMITTED: '{creator_name} Submitted Content for "{campaign_title}"',
    EmailTemplate.CREATOR_CONTENT_APPROVED: "Your Content Was Approved",
    EmailTemplate.BRAND_MESSAGE_RECEIVED: 'New Message from {sender_name} on "{campaign_title}"',
    EmailTemplate.CREATOR_MESSAGE_RECEIVED: 'New Message from {sender_name} on "{campaign_title}"',
    EmailTemplate.BRAND_CAMPAIGN_COMPLETED: 'Download Your Content from "{campaign_title}"',
    EmailTemplate.CREATOR_CAMPAIGN_COMPLETED: "Campaign Complete - Great Job!",
    EmailTemplate.BRAND_CAMPAIGN_BOOST_REMINDER: "Get More Creators on Your Campaign",
    EmailTemplate.CREATOR_NUDGE_FIRST_APPLICATION: "Start Applying to Campaigns Today",
    EmailTemplate.BRAND_NUDGE_CAMPAIGN_CREATION: "Need Help Launching Your First Campaign?",
}


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(text: str, context: Mapping[str, Any]) -> str:
    return text.format_map(_Blank(context))


def preview(body: str) -> str:
    limit = settings.NOTIFICATION_PREVIEW_CHARS
    return body[:limit] + ("..." if len(body) > limit else "")


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class NotificationEvent:
    type: NotificationType
    recipient_id: str
    context: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _Recipient:
    id: str
    role: str
    email: Optional[str]
    first_name: str
    name: str
    muted: bool


class Notifier(Protocol):
    async def publish(self, events: Sequence[NotificationEvent]) -> None: ...


class NotificationDispatcher:
    """Delivers events synchronously in their own short-lived sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_gateway: EmailGateway,
    ) -> None:
        self._session_factory = session_factory
        self._email_gateway = email_gateway

    async def publish(self, events: Sequence[NotificationEvent]) -> None:
        for event in events:
            await self.deliver(event)

    async def deliver(self, event: NotificationEvent) -> None:
        log = logger.bind(notification_type=event.type.value, recipient_id=event.recipient_id)
        descriptor = EVENT_REGISTRY[event.type]

        async with self._session_factory() as session:
            try:
                user = await session.get(User, event.recipient_id)
                prefs = await session.get(UserNotificationSettings, event.recipient_id)
            except Exception:
                log.exception("notification_recipient_lookup_failed")
                return
            if user is None:
                log.warning("notification_recipient_missing")
                return
            recipient = _Recipient(
                id=user.id,
                role=user.role,
                email=user.email,
                first_name=user.first_name or user.name,
                name=user.name,
                muted=bool(
                    descriptor.preference
                    and prefs is not None
                    and getattr(prefs, descriptor.preference) is False
                ),
            )

            copy = descriptor.for_role(recipient.role)
            context = {"recipient_name": recipient.name, **event.context}
            try:
                session.add(
                    Notification(
                        user_id=recipient.id,
                        type=event.type.value,
                        title=render(copy.title, context),
                        message=render(copy.message, context),
                        data=event.data,
                    )
                )
                await session.commit()
                log.info("notification_created")
            except Exception:
                log.exception("notification_write_failed")

        await self._send_email(event, descriptor, copy, recipient, context)

    async def _send_email(
        self,
        event: NotificationEvent,
        descriptor: EventDescriptor,
        copy: RoleCopy,
        recipient: "_Recipient",
        context: dict[str, Any],
    ) -> None:
        log = logger.bind(notification_type=event.type.value, recipient_id=recipient.id)
        if copy.email is None or not settings.EMAIL_ENABLED:
            return
        if not recipient.email:
            log.info("email_skipped_no_address")
            return
        if recipient.muted:
            log.bind(preference=descriptor.preference).info("email_skipped_preference")
            return

        subject = render(EMAIL_SUBJECTS.get(copy.email, copy.title), context)
        data = {_camel(k): v for k, v in {**context, **event.data}.items()}
        data.update(userId=recipient.id, firstName=recipient.first_name)
        try:
            await self._email_gateway.send(recipient.email, copy.email, subject, data)
        except Exception:
            log.bind(template=copy.email.value).exception("email_send_failed")


class BackgroundNotifier:
    """Defers dispatch until after the HTTP response has been sent."""

    def __init__(self, dispatcher: NotificationDispatcher, background_tasks: BackgroundTasks) -> None:
        self._dispatcher = dispatcher
        self._background_tasks = background_tasks

    async def publish(self, events: Sequence[NotificationEvent]) -> None:
        if events:
            self._background_tasks.add_task(self._dispatcher.publish, list(events))


async def list_for_user(
    session: AsyncSession,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Notification], int]:
    """Return ``(page, unread_count)`` for the user, newest first."""

    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
    items = list((await session.execute(stmt)).scalars().all())

    unread = (
        await session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
    ).scalar_one()
    return items, unread


async def mark_read(session: AsyncSession, user_id: str, notification_ids: Sequence[str]) -> int:
    if not notification_ids:
        return 0
    result = await session.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.id.in_(list(notification_ids)),
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    await session.commit()
    return result.rowcount or 0


async def get_preferences(session: AsyncSession, user_id: str) -> dict[str, bool]:
    row = await session.get(UserNotificationSettings, user_id)
    if row is None:
        return dict(DEFAULT_PREFERENCES)
    return {key: getattr(row, key) for key in DEFAULT_PREFERENCES}


async def update_preferences(
    session: AsyncSession, user_id: str, flags: Mapping[str, Optional[bool]]
) -> dict[str, bool]:
    """Apply the given flags; ``None`` leaves a flag unchanged."""

    row = await session.get(UserNotificationSettings, user_id)
    if row is None:
        row = UserNotificationSettings(user_id=user_id, **DEFAULT_PREFERENCES)
        session.add(row)
    for key, value in flags.items():
        if key in DEFAULT_PREFERENCES and value is not None:
            setattr(row, key, value)
    await session.commit()
    logger.bind(flags={k: v for k, v in flags.items() if v is not None}).info(
        "notification_preferences_updated"
    )
    return {key: getattr(row, key) for key in DEFAULT_PREFERENCES}


async def _already_nudged(
    session: AsyncSession, kind: NotificationType, user_ids: Sequence[str]
) -> list[Notification]:
    if not user_ids:
        return []
    return list(
        (
            await session.execute(
                select(Notification).where(
                    Notification.type == kind.value, Notification.user_id.in_(list(user_ids))
                )
            )
        ).scalars().all()
    )


async def run_scheduled_nudges(
    session: AsyncSession, notifier: Notifier, now: Optional[datetime] = None
) -> dict[str, int]:
    """Queue reminder notifications for stalled brands, creators and campaigns.

    Returns the number of events emitted per notification type.
    """

    now = now or utcnow()
    events: list[NotificationEvent] = []

    newest = now - timedelta(days=settings.BOOST_REMINDER_MIN_DAYS)
    oldest = now - timedelta(days=settings.BOOST_REMINDER_MAX_DAYS)
    campaigns = list(
        (
            await session.execute(
                select(Campaign).where(
                    Campaign.status == CampaignStatus.ACTIVE.value,
                    Campaign.created_at >= oldest,
                    Campaign.created_at < newest,
                    Campaign.applicant_count == 0,
                )
            )
        ).scalars().all()
    )
    seen = {
        (n.user_id, (n.data or {}).get("campaign_id"))
        for n in await _already_nudged(
            session,
            NotificationType.BRAND_CAMPAIGN_BOOST_REMINDER,
            [c.brand_id for c in campaigns],
        )
    }
    for campaign in campaigns:
        if (campaign.brand_id, campaign.id) in seen:
            continue
        events.append(
            NotificationEvent(
                NotificationType.BRAND_CAMPAIGN_BOOST_REMINDER,
                campaign.brand_id,
                context={"campaign_title": campaign.title},
                data={"campaign_id": campaign.id},
            )
        )

    creator_cutoff = now - timedelta(hours=settings.NUDGE_CREATOR_AFTER_HOURS)
    creators = (
        await session.execute(
            select(User.id).where(
                User.role == UserRole.CREATOR.value,
                User.is_active.is_(True),
                User.created_at < creator_cutoff,
                ~select(CampaignApplication.id)
                .where(CampaignApplication.creator_id == User.id)
                .exists(),
            )
        )
    ).scalars().all()
    nudged = {
        n.user_id
        for n in await _already_nudged(
            session, NotificationType.CREATOR_NUDGE_FIRST_APPLICATION, creators
        )
    }
    events.extend(
        NotificationEvent(NotificationType.CREATOR_NUDGE_FIRST_APPLICATION, user_id)
        for user_id in creators
        if user_id not in nudged
    )

    brand_cutoff = now - timedelta(hours=settings.NUDGE_BRAND_AFTER_HOURS)
    brands = (
        await session.execute(
            select(User.id).where(
                User.role == UserRole.BRAND.value,
                User.is_active.is_(True),
                User.created_at < brand_cutoff,
                ~select(Campaign.id).where(Campaign.brand_id == User.id).exists(),
            )
        )
    ).scalars().all()
    nudged = {
        n.user_id
        for n in await _already_nudged(
            session, NotificationType.BRAND_NUDGE_CAMPAIGN_CREATION, brands
        )
    }
    events.extend(
        NotificationEvent(NotificationType.BRAND_NUDGE_CAMPAIGN_CREATION, user_id)
        for user_id in brands
        if user_id not in nudged
    )

    # Release the read snapshot before the dispatcher opens its own sessions.
    await session.rollback()
    await notifier.publish(events)

    counts = {
        NotificationType.BRAND_CAMPAIGN_BOOST_REMINDER.value: 0,
        NotificationType.CREATOR_NUDGE_FIRST_APPLICATION.value: 0,
        NotificationType.BRAND_NUDGE_CAMPAIGN_CREATION.value: 0,
    }
    for event in events:
        counts[event.type.value] += 1
    logger.bind(**counts).info("scheduled_nudges_run")
    return counts
