from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import Identity, get_current_identity
from app.core.rate_limit import limiter
from app.schemas.application import (
    ApplicationCreatePayload,
    ApplicationDecisionPayload,
    ApplicationOut,
    CreatorApplicationOut,
)
from app.services import applications
from app.services.notifications import Notifier

router = APIRouter(tags=["applications"])


@router.post(
    "/campaigns/{campaign_id}/apply",
    response_model=ApplicationOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.APPLY_RATE)
async def apply_to_campaign(
    campaign_id: str,
    payload: ApplicationCreatePayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await applications.apply(
        session, notifier, identity, campaign_id, payload.message, payload.custom_quote
    )


@router.get("/campaigns/{campaign_id}/applicants", response_model=List[ApplicationOut])
async def list_campaign_applicants(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await applications.list_for_campaign(session, identity, campaign_id)


@router.patch(
    "/campaigns/{campaign_id}/applicants/{application_id}", response_model=ApplicationOut
)
async def decide_application(
    campaign_id: str,
    application_id: str,
    payload: ApplicationDecisionPayload,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await applications.decide(
        session, notifier, identity, campaign_id, application_id, payload.status
    )


@router.get("/creator/applications", response_model=List[CreatorApplicationOut])
async def list_my_applications(
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    rows = await applications.list_for_creator(session, identity)
    return [
        CreatorApplicationOut(
            **ApplicationOut.model_validate(application).model_dump(),
            campaign_title=campaign.title,
            campaign_status=campaign.status,
        )
        for application, campaign in rows
    ]
