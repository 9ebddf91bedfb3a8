"""Pydantic schemas for the application ledger."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_validator


class ApplicationCreatePayload(BaseModel):
    message: str = Field(min_length=1, max_length=5000)
    custom_quote: Optional[condecimal(max_digits=12, decimal_places=2, ge=0)] = None

    @field_validator("message", mode="before")
    @classmethod
    def _strip_message(cls, value):
        return value.strip() if isinstance(value, str) else value


class ApplicationDecisionPayload(BaseModel):
    # Validated by the ledger so unknown values surface as 400, not 422.
    status: str


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    creator_id: str
    message: str
    custom_quote: Optional[Decimal] = None
    status: str
    created_at: datetime
    updated_at: datetime


class CreatorApplicationOut(ApplicationOut):
    campaign_title: str
    campaign_status: str


class ApplicationListOut(BaseModel):
    items: List[ApplicationOut]
