"""Capability resolution for campaign-scoped operations.

Every ledger and messaging operation resolves a :class:`CampaignAccess`
once, up front, from the caller's identity and the campaign row. The
operation then checks the capability it needs instead of re-querying
ownership or application status itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import Identity
from app.core.errors import Forbidden, NotFound
from app.models.application import ApplicationStatus, CampaignApplication
from app.models.campaign import Campaign
from app.models.user import UserRole


class Capability(str, Enum):
    APPLICANT = "applicant"
    CAMPAIGN_OWNER = "campaign_owner"
    CHANNEL_PARTICIPANT = "channel_participant"
    CONTRIBUTOR = "contributor"


@dataclass(frozen=True)
class CampaignAccess:
    identity: Identity
    campaign: Campaign
    application: Optional[CampaignApplication]
    capabilities: frozenset[Capability]

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability, detail: str) -> None:
        if capability not in self.capabilities:
            raise Forbidden(detail)


def capabilities_for(
    identity: Identity, campaign: Campaign, application: Optional[CampaignApplication]
) -> frozenset[Capability]:
    caps: set[Capability] = set()
    if identity.role == UserRole.BRAND.value and campaign.brand_id == identity.user_id:
        caps.update({Capability.CAMPAIGN_OWNER, Capability.CHANNEL_PARTICIPANT})
    if identity.role == UserRole.CREATOR.value:
        caps.add(Capability.APPLICANT)
        if application is not None and application.status == ApplicationStatus.ACCEPTED.value:
            caps.update({Capability.CONTRIBUTOR, Capability.CHANNEL_PARTICIPANT})
    return frozenset(caps)


async def resolve_campaign_access(
    session: AsyncSession, identity: Identity, campaign_id: str
) -> CampaignAccess:
    """Load the campaign and the caller's application; ``NotFound`` if the campaign is missing."""

    campaign = await session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found")

    application = None
    if identity.role == UserRole.CREATOR.value:
        application = (
            await session.execute(
                select(CampaignApplication).where(
                    CampaignApplication.campaign_id == campaign_id,
                    CampaignApplication.creator_id == identity.user_id,
                )
            )
        ).scalar_one_or_none()

    return CampaignAccess(
        identity=identity,
        campaign=campaign,
        application=application,
        capabilities=capabilities_for(identity, campaign, application),
    )
