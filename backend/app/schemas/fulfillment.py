"""Pydantic schemas for fulfillment and payment eligibility reports."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class RequirementProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requirement_id: Optional[str] = None
    position: int
    content_type: str
    social_channel: str
    required: int
    approved: int
    satisfied: bool


class CreatorFulfillmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    creator_id: str
    eligible: bool
    completed_at: Optional[datetime] = None
    submission_count: int
    total_requirements: int
    requirements: List[RequirementProgressOut]


class EligibilityReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    campaign_id: str
    budget_type: Optional[str] = None
    creators: List[CreatorFulfillmentOut]
