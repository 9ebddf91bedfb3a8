"""Pydantic schemas for content submissions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.submissions import AssetInput


class AssetPayload(BaseModel):
    type: str
    url: str = Field(min_length=1, max_length=2048)
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    dimensions: Optional[dict[str, Any]] = None
    duration: Optional[float] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None

    def to_input(self) -> AssetInput:
        return AssetInput(**self.model_dump())


class SubmissionCreatePayload(BaseModel):
    campaign_id: str
    requirement_id: str
    content_type: str = Field(min_length=1)
    social_channel: str = Field(min_length=1)
    assets: List[AssetPayload] = Field(default_factory=list)
    quantity: Optional[int] = Field(default=None, ge=1)
    task_description: Optional[str] = None


class SubmissionResubmitPayload(BaseModel):
    assets: List[AssetPayload] = Field(default_factory=list)
    quantity: Optional[int] = Field(default=None, ge=1)
    task_description: Optional[str] = None


class SubmissionReviewPayload(BaseModel):
    status: str
    rejection_comment: Optional[str] = Field(default=None, max_length=2000)


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    url: str
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    dimensions: Optional[dict[str, Any]] = None
    duration: Optional[float] = None
    file_size: Optional[int] = None
    tags: Optional[List[str]] = None


class SubmissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    creator_id: str
    task_id: str
    task_description: Optional[str] = None
    content_type: str
    social_channel: str
    quantity: int
    status: str
    rejection_comment: Optional[str] = None
    approved_date: Optional[datetime] = None
    submitted_date: datetime
    created_at: datetime
    updated_at: datetime
    assets: List[AssetOut]
