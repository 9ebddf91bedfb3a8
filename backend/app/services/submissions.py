"""Submission ledger: creator deliverables and brand review."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.db import ledger_transaction
from app.core.db_errors import fetch_one_for_update
from app.core.db_retry import retry_on_deadlock
from app.core.deps import Identity
from app.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from app.models.submission import AssetType, CampaignSubmission, SubmissionAsset, SubmissionStatus
from app.models.user import User
from app.services.access import Capability, CampaignAccess, resolve_campaign_access
from app.services.fulfillment import evaluate_creator_in_campaign
from app.services.notifications import NotificationEvent, NotificationType, Notifier
from app.utils.clock import utcnow

ASSET_TYPES = {AssetType.IMAGE.value, AssetType.VIDEO.value}
REVIEW_DECISIONS = {SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value}


@dataclass
class AssetInput:
    type: str
    url: str
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    dimensions: Optional[dict[str, Any]] = None
    duration: Optional[float] = None
    file_size: Optional[int] = None
    tags: Optional[list[str]] = None


def _validate_assets(assets: Sequence[AssetInput]) -> None:
    if not assets:
        raise InvalidInput("At least one asset is required")
    for asset in assets:
        if asset.type not in ASSET_TYPES:
            raise InvalidInput(f"Unsupported asset type: {asset.type}")
        if not asset.url:
            raise InvalidInput("Asset url is required")


async def _insert_assets(
    session: AsyncSession, submission: CampaignSubmission, assets: Sequence[AssetInput]
) -> None:
    for position, asset in enumerate(assets):
        submission.assets.append(
            SubmissionAsset(
                position=position,
                type=asset.type,
                url=asset.url,
                thumbnail_url=asset.thumbnail_url,
                title=asset.title,
                description=asset.description,
                dimensions=asset.dimensions,
                duration=asset.duration,
                file_size=asset.file_size,
                tags=asset.tags,
            )
        )
    await session.flush()


async def _names(session: AsyncSession, access: CampaignAccess, creator_id: str) -> dict[str, str]:
    creator = await session.get(User, creator_id)
    brand = await session.get(User, access.campaign.brand_id)
    return {
        "campaign_title": access.campaign.title,
        "creator_name": creator.name if creator else "Creator",
        "brand_name": brand.name if brand else "Brand",
    }


@retry_on_deadlock
async def _submit_txn(
    session: AsyncSession,
    identity: Identity,
    campaign_id: str,
    requirement_id: str,
    content_type: str,
    social_channel: str,
    assets: Sequence[AssetInput],
    quantity: Optional[int],
    task_description: Optional[str],
) -> tuple[CampaignSubmission, list[NotificationEvent]]:
    async with ledger_transaction(session):
        access = await resolve_campaign_access(session, identity, campaign_id)
        access.require(
            Capability.CONTRIBUTOR, "You must be accepted to this campaign to submit content"
        )
        if not requirement_id or not requirement_id.strip():
            raise InvalidInput("A content requirement reference is required")
        _validate_assets(assets)

        now = utcnow()
        submission = CampaignSubmission(
            campaign_id=campaign_id,
            creator_id=identity.user_id,
            task_id=requirement_id.strip(),
            task_description=task_description,
            content_type=content_type,
            social_channel=social_channel,
            quantity=quantity or len(assets),
            status=SubmissionStatus.PENDING.value,
            submitted_date=now,
            assets=[],
        )
        session.add(submission)
        await session.flush()
        await _insert_assets(session, submission, assets)
        await log_audit(
            session,
            identity.user_id,
            "campaign_submission",
            submission.id,
            "CREATE",
            {"campaign_id": campaign_id, "task_id": submission.task_id, "assets": len(assets)},
        )

        context = await _names(session, access, identity.user_id)
        events = [
            NotificationEvent(
                NotificationType.SUBMISSION_CREATED,
                access.campaign.brand_id,
                context,
                {
                    "campaign_id": campaign_id,
                    "submission_id": submission.id,
                    "creator_id": identity.user_id,
                },
            )
        ]
    return submission, events


async def submit(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    campaign_id: str,
    requirement_id: str,
    content_type: str,
    social_channel: str,
    assets: Sequence[AssetInput],
    quantity: Optional[int] = None,
    task_description: Optional[str] = None,
) -> CampaignSubmission:
    """Create a submission and all of its assets, or nothing at all."""

    submission, events = await _submit_txn(
        session,
        identity,
        campaign_id,
        requirement_id,
        content_type,
        social_channel,
        assets,
        quantity,
        task_description,
    )
    logger.bind(campaign_id=campaign_id, submission_id=submission.id).info("submission_created")
    await notifier.publish(events)
    return submission


@retry_on_deadlock
async def _resubmit_txn(
    session: AsyncSession,
    identity: Identity,
    submission_id: str,
    assets: Sequence[AssetInput],
    quantity: Optional[int],
    task_description: Optional[str],
) -> tuple[CampaignSubmission, list[NotificationEvent]]:
    async with ledger_transaction(session):
        submission = await fetch_one_for_update(
            session, select(CampaignSubmission).where(CampaignSubmission.id == submission_id)
        )
        if submission is None:
            raise NotFound("Submission not found")
        if submission.creator_id != identity.user_id:
            raise Forbidden("You can only resubmit your own content")
        access = await resolve_campaign_access(session, identity, submission.campaign_id)
        access.require(
            Capability.CONTRIBUTOR, "You must be accepted to this campaign to submit content"
        )
        if submission.status == SubmissionStatus.APPROVED.value:
            raise InvalidState("Approved submissions cannot be changed")
        _validate_assets(assets)

        submission.assets.clear()
        await session.flush()
        await _insert_assets(session, submission, assets)
        submission.status = SubmissionStatus.PENDING.value
        submission.rejection_comment = None
        submission.approved_date = None
        submission.submitted_date = utcnow()
        submission.quantity = quantity or len(assets)
        if task_description is not None:
            submission.task_description = task_description
        await session.flush()
        await log_audit(
            session,
            identity.user_id,
            "campaign_submission",
            submission.id,
            "RESUBMIT",
            {"assets": len(assets)},
        )

        context = await _names(session, access, identity.user_id)
        events = [
            NotificationEvent(
                NotificationType.SUBMISSION_UPDATED,
                access.campaign.brand_id,
                context,
                {
                    "campaign_id": submission.campaign_id,
                    "submission_id": submission.id,
                    "creator_id": identity.user_id,
                },
            )
        ]
    return submission, events


async def resubmit(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    submission_id: str,
    assets: Sequence[AssetInput],
    quantity: Optional[int] = None,
    task_description: Optional[str] = None,
) -> CampaignSubmission:
    """Replace the assets of a pending or rejected submission and send it back for review."""

    submission, events = await _resubmit_txn(
        session, identity, submission_id, assets, quantity, task_description
    )
    logger.bind(submission_id=submission.id).info("submission_resubmitted")
    await notifier.publish(events)
    return submission


@retry_on_deadlock
async def _review_txn(
    session: AsyncSession,
    identity: Identity,
    submission_id: str,
    decision: str,
    rejection_comment: Optional[str],
) -> tuple[CampaignSubmission, bool, list[NotificationEvent]]:
    async with ledger_transaction(session):
        submission = await fetch_one_for_update(
            session, select(CampaignSubmission).where(CampaignSubmission.id == submission_id)
        )
        if submission is None:
            raise NotFound("Submission not found")
        access = await resolve_campaign_access(session, identity, submission.campaign_id)
        access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can review submissions")
        if decision not in REVIEW_DECISIONS:
            raise InvalidInput("Decision must be 'approved' or 'rejected'")

        campaign = access.campaign
        approving = decision == SubmissionStatus.APPROVED.value
        before = None
        if approving:
            before = await evaluate_creator_in_campaign(
                session, campaign.content_items, campaign.id, submission.creator_id
            )

        previous = submission.status
        submission.status = decision
        if approving:
            submission.approved_date = utcnow()
            submission.rejection_comment = None
        else:
            submission.rejection_comment = rejection_comment or None
            submission.approved_date = None
        await session.flush()

        completed = False
        if approving:
            after = await evaluate_creator_in_campaign(
                session, campaign.content_items, campaign.id, submission.creator_id
            )
            completed = after.eligible and not before.eligible

        await log_audit(
            session,
            identity.user_id,
            "campaign_submission",
            submission.id,
            "REVIEW",
            {"from": previous, "to": decision, "completed": completed},
        )

        context = await _names(session, access, submission.creator_id)
        if rejection_comment:
            context["rejection_note"] = (
                f'Your submission for "{campaign.title}" needs revision: {rejection_comment}'
            )
        else:
            context["rejection_note"] = (
                f'Your submission for "{campaign.title}" was rejected. '
                "Please check the feedback and resubmit."
            )
        data = {
            "campaign_id": campaign.id,
            "submission_id": submission.id,
            "brand_id": identity.user_id,
            "status": decision,
            "rejection_comment": submission.rejection_comment,
        }
        kind = NotificationType.SUBMISSION_APPROVED if approving else NotificationType.SUBMISSION_REJECTED
        events = [NotificationEvent(kind, submission.creator_id, context, data)]
        if completed:
            done = {"campaign_id": campaign.id, "creator_id": submission.creator_id}
            events.append(
                NotificationEvent(
                    NotificationType.CAMPAIGN_COMPLETED, submission.creator_id, context, done
                )
            )
            events.append(
                NotificationEvent(
                    NotificationType.CAMPAIGN_COMPLETED, campaign.brand_id, context, done
                )
            )
    return submission, completed, events


async def review(
    session: AsyncSession,
    notifier: Notifier,
    identity: Identity,
    submission_id: str,
    decision: str,
    rejection_comment: Optional[str] = None,
) -> CampaignSubmission:
    """Approve or reject a submission and re-evaluate the creator's fulfillment."""

    submission, completed, events = await _review_txn(
        session, identity, submission_id, decision, rejection_comment
    )
    logger.bind(
        submission_id=submission.id, status=decision, creator_completed=completed
    ).info("submission_reviewed")
    await notifier.publish(events)
    return submission


async def list_for_campaign(
    session: AsyncSession,
    identity: Identity,
    campaign_id: str,
    status: Optional[str] = None,
) -> list[CampaignSubmission]:
    access = await resolve_campaign_access(session, identity, campaign_id)
    access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can view submissions")
    stmt = select(CampaignSubmission).where(CampaignSubmission.campaign_id == campaign_id)
    if status:
        stmt = stmt.where(CampaignSubmission.status == status)
    stmt = stmt.order_by(CampaignSubmission.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def list_for_creator(
    session: AsyncSession,
    identity: Identity,
    campaign_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[CampaignSubmission]:
    stmt = select(CampaignSubmission).where(CampaignSubmission.creator_id == identity.user_id)
    if campaign_id:
        stmt = stmt.where(CampaignSubmission.campaign_id == campaign_id)
    if status:
        stmt = stmt.where(CampaignSubmission.status == status)
    stmt = stmt.order_by(CampaignSubmission.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())
