from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttachmentPayload(BaseModel):
    url: str = Field(min_length=1)
    type: str
    name: str
    size: Optional[int] = Field(default=None, ge=0)


class MessageSendPayload(BaseModel):
    campaign_id: str
    # Length limits are enforced by the channel so they report as 400.
    message: str
    recipient_id: Optional[str] = None
    is_broadcast: bool = False
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    sender_id: str
    recipient_id: Optional[str] = None
    body: str
    is_broadcast: bool
    attachments: List[AttachmentPayload]
    is_read: bool
    created_at: datetime


class ParticipantOut(BaseModel):
    id: str
    name: str
