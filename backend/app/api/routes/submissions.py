from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier
from app.core.db import get_session
from app.core.deps import Identity, get_current_identity
from app.schemas.submission import (
    SubmissionCreatePayload,
    SubmissionOut,
    SubmissionResubmitPayload,
    SubmissionReviewPayload,
)
from app.services import submissions
from app.services.notifications import Notifier

router = APIRouter(tags=["submissions"])


@router.post("/submissions", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
async def create_submission(
    payload: SubmissionCreatePayload,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await submissions.submit(
        session,
        notifier,
        identity,
        payload.campaign_id,
        payload.requirement_id,
        payload.content_type,
        payload.social_channel,
        [asset.to_input() for asset in payload.assets],
        quantity=payload.quantity,
        task_description=payload.task_description,
    )


@router.put("/submissions/{submission_id}", response_model=SubmissionOut)
async def resubmit_submission(
    submission_id: str,
    payload: SubmissionResubmitPayload,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await submissions.resubmit(
        session,
        notifier,
        identity,
        submission_id,
        [asset.to_input() for asset in payload.assets],
        quantity=payload.quantity,
        task_description=payload.task_description,
    )


@router.patch("/submissions/{submission_id}/review", response_model=SubmissionOut)
async def review_submission(
    submission_id: str,
    payload: SubmissionReviewPayload,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    identity: Identity = Depends(get_current_identity),
):
    return await submissions.review(
        session, notifier, identity, submission_id, payload.status, payload.rejection_comment
    )


@router.get("/campaigns/{campaign_id}/submissions", response_model=List[SubmissionOut])
async def list_campaign_submissions(
    campaign_id: str,
    status: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await submissions.list_for_campaign(session, identity, campaign_id, status)


@router.get("/creator/submissions", response_model=List[SubmissionOut])
async def list_my_submissions(
    campaign_id: Optional[str] = None,
    status: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await submissions.list_for_creator(session, identity, campaign_id, status)
