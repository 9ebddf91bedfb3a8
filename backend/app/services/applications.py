"""Application ledger: creator applications and brand decisions."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.db import ledger_transaction
from app.core.db_errors import fetch_one_for_update, raise_on_duplicate
from app.core.db_retry import retry_on_deadlock
from app.core.deps import Identity
from app.core.errors import Conflict, InvalidInput, InvalidState, NotFound
from app.models.application import ApplicationStatus, CampaignApplication
from app.models.campaign import Campaign, CampaignStatus
from app.models.user import User
from app.services.access import Capability, resolve_campaign_access
from app.services.notifications import NotificationEvent, NotificationType, Notifier

ALREADY_APPLIED = "You have already applied to this campaign"
DECISIONS = {ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value}


async def _name_of(session: AsyncSession, user_id: str) -> str:
    user = await session.get(User, user_id)
    return user.name if user else "Someone"


@retry_on_deadlock
async def _apply_txn(
    session: AsyncSession,
    identity: Identity,
    campaign_id: str,
    message: str,
    custom_quote: Optional[Decimal],
) -> tuple[CampaignApplication, list[NotificationEvent]]:
    async with ledger_transaction(session):
        access = await resolve_campaign_access(session, identity, campaign_id)
        access.require(Capability.APPLICANT, "Only creators can apply to campaigns")
        campaign = access.campaign
        if campaign.status != CampaignStatus.ACTIVE.value:
            raise InvalidState("Campaign is not accepting applications")
        if access.application is not None:
            raise Conflict(ALREADY_APPLIED)

        application = CampaignApplication(
            campaign_id=campaign.id,
            creator_id=identity.user_id,
            message=message,
            custom_quote=custom_quote,
            status=ApplicationStatus.PENDING.value,
        )
        session.add(application)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise_on_duplicate(exc, ALREADY_APPLIED)

        # Advisory counter; concurrent applies may undercount.
        campaign.applicant_count = (campaign.applicant_count or 0) + 1
        await log_audit(
            session,
            identity.user_id,
            "campaign_application",
            application.id,
            "CREATE",
            {"campaign_id": campaign.id},
        )

        creator_name = await _name_of(session, identity.user_id)
        brand_name = await _name_of(session, campaign.brand_id)
        context = {
            "campaign_title": campaign.title,
            "creator_name": creator_name,
            "brand_name": brand_name,
        }
        data = {
            "campaign_id": campaign.id,
            "application_id": application.id,
            "creator_id": identity.user_id,
        }
        events = [
            NotificationEvent(NotificationType.APPLICATION_CREATED, campaign.brand_id, context, data),
            NotificationEvent(NotificationType.APPLICATION_SUBMITTED, identity.user_id, context, data),
        ]
    return application, events


async def apply(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    campaign_id: str,
    message: str,
    custom_quote: Optional[Decimal] = None,
) -> CampaignApplication:
    """Create a ``pending`` application for the calling creator."""

    application, events = await _apply_txn(session, identity, campaign_id, message, custom_quote)
    logger.bind(campaign_id=campaign_id, application_id=application.id).info("application_created")
    await notifier.publish(events)
    return application


@retry_on_deadlock
async def _decide_txn(
    session: AsyncSession,
    identity: Identity,
    campaign_id: str,
    application_id: str,
    decision: str,
) -> tuple[CampaignApplication, list[NotificationEvent]]:
    async with ledger_transaction(session):
        access = await resolve_campaign_access(session, identity, campaign_id)
        access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can review applications")

        application = await fetch_one_for_update(
            session, select(CampaignApplication).where(CampaignApplication.id == application_id)
        )
        if application is None or application.campaign_id != campaign_id:
            raise NotFound("Application not found")
        if decision not in DECISIONS:
            raise InvalidInput("Decision must be 'accepted' or 'rejected'")
        if application.status != ApplicationStatus.PENDING.value:
            raise InvalidState(f"Application is already {application.status}")

        previous = application.status
        application.status = decision
        await session.flush()
        await log_audit(
            session,
            identity.user_id,
            "campaign_application",
            application.id,
            "UPDATE",
            {"from": previous, "to": decision},
        )

        kind = (
            NotificationType.APPLICATION_ACCEPTED
            if decision == ApplicationStatus.ACCEPTED.value
            else NotificationType.APPLICATION_REJECTED
        )
        events = [
            NotificationEvent(
                kind,
                application.creator_id,
                {
                    "campaign_title": access.campaign.title,
                    "brand_name": await _name_of(session, identity.user_id),
                },
                {
                    "campaign_id": campaign_id,
                    "application_id": application.id,
                    "status": decision,
                },
            )
        ]
    return application, events


async def decide(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    campaign_id: str,
    application_id: str,
    decision: str,
) -> CampaignApplication:
    """Move a ``pending`` application to ``accepted`` or ``rejected``."""

    application, events = await _decide_txn(
        session, identity, campaign_id, application_id, decision
    )
    logger.bind(
        campaign_id=campaign_id, application_id=application_id, status=decision
    ).info("application_decided")
    await notifier.publish(events)
    return application


async def list_for_campaign(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> list[CampaignApplication]:
    access = await resolve_campaign_access(session, identity, campaign_id)
    access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can view applicants")
    return list(
        (
            await session.execute(
                select(CampaignApplication)
                .where(CampaignApplication.campaign_id == campaign_id)
                .order_by(CampaignApplication.created_at.desc())
            )
        ).scalars().all()
    )


async def list_for_creator(
    session: AsyncSession, identity: Identity
) -> list[tuple[CampaignApplication, Campaign]]:
    """The caller's own applications with their campaigns, newest first."""

    rows = await session.execute(
        select(CampaignApplication, Campaign)
        .join(Campaign, Campaign.id == CampaignApplication.campaign_id)
        .where(CampaignApplication.creator_id == identity.user_id)
        .order_by(CampaignApplication.created_at.desc())
    )
    return [(application, campaign) for application, campaign in rows.all()]
