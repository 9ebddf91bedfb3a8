from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class NotificationListOut(BaseModel):
    items: List[NotificationOut]
    unread_count: int


class MarkReadPayload(BaseModel):
    notification_ids: List[str] = Field(min_length=1)


class MarkReadOut(BaseModel):
    updated: int


class NotificationPreferences(BaseModel):
    email_campaign_updates: bool
    email_creator_messages: bool
    email_payment_alerts: bool
    email_weekly_reports: bool
    email_marketing_emails: bool


class NotificationPreferencesPayload(BaseModel):
    email_campaign_updates: Optional[bool] = None
    email_creator_messages: Optional[bool] = None
    email_payment_alerts: Optional[bool] = None
    email_weekly_reports: Optional[bool] = None
    email_marketing_emails: Optional[bool] = None


class ScheduledNudgesOut(BaseModel):
    brand_campaign_boost_reminder: int
    creator_nudge_first_application: int
    brand_nudge_campaign_creation: int
