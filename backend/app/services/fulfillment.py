"""Content-requirement fulfillment matcher and payment eligibility reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import Identity
from app.models.application import ApplicationStatus, CampaignApplication
from app.models.submission import CampaignSubmission, SubmissionStatus
from app.services.access import Capability, resolve_campaign_access


@dataclass(frozen=True)
class ContentRequirement:
    id: Optional[str]
    social_channel: str
    content_type: str
    quantity: int = 1
    description: Optional[str] = None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "ContentRequirement":
        """Build from a stored campaign content item (camelCase JSON keys)."""

        raw_id = item.get("id")
        return cls(
            # Editors have stored numeric ids; submissions always carry strings.
            id=str(raw_id) if raw_id not in (None, "") else None,
            social_channel=str(item.get("socialChannel") or ""),
            content_type=str(item.get("contentType") or ""),
            quantity=_positive_int(item.get("quantity")),
            description=item.get("description"),
        )


def _positive_int(value: Any, default: int = 1) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


@dataclass(frozen=True)
class SubmissionRecord:
    id: str
    task_id: str
    content_type: str
    social_channel: str
    quantity: Optional[int] = 1
    approved_date: Optional[datetime] = None
    submitted_date: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: CampaignSubmission) -> "SubmissionRecord":
        return cls(
            id=row.id,
            task_id=row.task_id,
            content_type=row.content_type,
            social_channel=row.social_channel,
            quantity=row.quantity,
            approved_date=row.approved_date,
            submitted_date=row.submitted_date,
        )


@dataclass
class RequirementProgress:
    requirement_id: Optional[str]
    position: int
    content_type: str
    social_channel: str
    required: int
    approved: int
    satisfied: bool
    matched_submission_ids: list[str] = field(default_factory=list)


@dataclass
class CreatorFulfillment:
    creator_id: str
    eligible: bool
    completed_at: Optional[datetime]
    submission_count: int
    total_requirements: int
    requirements: list[RequirementProgress] = field(default_factory=list)


@dataclass
class EligibilityReport:
    campaign_id: str
    budget_type: Optional[str]
    creators: list[CreatorFulfillment]


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def _kind_matches(requirement: ContentRequirement, submission: SubmissionRecord) -> bool:
    return _same(requirement.content_type, submission.content_type) and _same(
        requirement.social_channel, submission.social_channel
    )


def match_requirement(
    requirement: ContentRequirement,
    position: int,
    approved: Sequence[SubmissionRecord],
) -> RequirementProgress:
    """Match approved submissions against one requirement at 0-based ``position``."""

    matched: list[SubmissionRecord] = []
    if requirement.id:
        matched = [
            s for s in approved if s.task_id == requirement.id and _kind_matches(requirement, s)
        ]

    legacy_key = str(position + 1)
    taken = {s.id for s in matched}
    legacy = [
        s
        for s in approved
        if s.id not in taken and s.task_id == legacy_key and _kind_matches(requirement, s)
    ]
    if legacy:
        logger.bind(
            requirement_id=requirement.id,
            position=position,
            submission_ids=[s.id for s in legacy],
        ).info("legacy_task_id_match")
        matched.extend(legacy)

    required = requirement.quantity or 1
    total = sum((s.quantity or 1) for s in matched)
    return RequirementProgress(
        requirement_id=requirement.id,
        position=position,
        content_type=requirement.content_type,
        social_channel=requirement.social_channel,
        required=required,
        approved=total,
        satisfied=total >= required,
        matched_submission_ids=[s.id for s in matched],
    )


def evaluate_creator(
    creator_id: str,
    requirements: Optional[Sequence[ContentRequirement]],
    submissions: Iterable[SubmissionRecord],
) -> CreatorFulfillment:
    """Decide payment eligibility for one creator. Never raises."""

    approved = list(submissions)
    requirements = list(requirements or [])
    progress = [match_requirement(req, i, approved) for i, req in enumerate(requirements)]
    eligible = bool(progress) and all(p.satisfied for p in progress)

    completed_at = None
    if eligible:
        stamps = [s.approved_date or s.submitted_date for s in approved]
        stamps = [s for s in stamps if s is not None]
        completed_at = max(stamps) if stamps else None

    return CreatorFulfillment(
        creator_id=creator_id,
        eligible=eligible,
        completed_at=completed_at,
        submission_count=len(approved),
        total_requirements=len(requirements),
        requirements=progress,
    )


def campaign_requirements(content_items: Optional[list[dict[str, Any]]]) -> list[ContentRequirement]:
    items = content_items if isinstance(content_items, list) else []
    skipped = sum(1 for item in items if not isinstance(item, dict))
    if skipped:
        logger.bind(skipped=skipped).warning("malformed_content_items_skipped")
    return [ContentRequirement.from_item(item) for item in items if isinstance(item, dict)]


async def approved_submissions(
    session: AsyncSession, campaign_id: str, creator_id: Optional[str] = None
) -> list[CampaignSubmission]:
    stmt = select(CampaignSubmission).where(
        CampaignSubmission.campaign_id == campaign_id,
        CampaignSubmission.status == SubmissionStatus.APPROVED.value,
    )
    if creator_id is not None:
        stmt = stmt.where(CampaignSubmission.creator_id == creator_id)
    return list((await session.execute(stmt)).scalars().all())


async def evaluate_creator_in_campaign(
    session: AsyncSession, content_items: Optional[list[dict[str, Any]]], campaign_id: str, creator_id: str
) -> CreatorFulfillment:
    rows = await approved_submissions(session, campaign_id, creator_id)
    return evaluate_creator(
        creator_id,
        campaign_requirements(content_items),
        [SubmissionRecord.from_row(r) for r in rows],
    )


async def evaluate_eligibility(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> EligibilityReport:
    """Fulfillment report for every accepted creator on a campaign (owner only)."""

    access = await resolve_campaign_access(session, identity, campaign_id)
    access.require(Capability.CAMPAIGN_OWNER, "Only the campaign owner can view eligibility")
    campaign = access.campaign

    creator_ids = (
        await session.execute(
            select(CampaignApplication.creator_id)
            .where(
                CampaignApplication.campaign_id == campaign_id,
                CampaignApplication.status == ApplicationStatus.ACCEPTED.value,
            )
            .order_by(CampaignApplication.created_at)
        )
    ).scalars().all()

    rows = await approved_submissions(session, campaign_id)
    by_creator: dict[str, list[SubmissionRecord]] = {}
    for row in rows:
        by_creator.setdefault(row.creator_id, []).append(SubmissionRecord.from_row(row))

    requirements = campaign_requirements(campaign.content_items)
    creators = [
        evaluate_creator(creator_id, requirements, by_creator.get(creator_id, []))
        for creator_id in creator_ids
    ]
    return EligibilityReport(
        campaign_id=campaign.id, budget_type=campaign.budget_type, creators=creators
    )


async def payment_due(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> EligibilityReport:
    report = await evaluate_eligibility(session, identity, campaign_id)
    report.creators = [c for c in report.creators if c.eligible]
    return report
