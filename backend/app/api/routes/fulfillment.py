from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_session
from app.core.deps import Identity, get_current_identity
from app.schemas.fulfillment import EligibilityReportOut
from app.services import fulfillment

router = APIRouter(prefix="/campaigns", tags=["fulfillment"])


@router.get("/{campaign_id}/eligibility", response_model=EligibilityReportOut)
async def campaign_eligibility(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    """Fulfillment progress for every accepted creator."""

    return await fulfillment.evaluate_eligibility(session, identity, campaign_id)


@router.get("/{campaign_id}/payment-due", response_model=EligibilityReportOut)
async def campaign_payment_due(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
):
    return await fulfillment.payment_due(session, identity, campaign_id)
