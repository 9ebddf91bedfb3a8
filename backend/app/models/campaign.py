"""Campaign model: a brand-authored work order with content requirements."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, new_id
from app.utils.clock import utcnow


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Campaign(Base):
    """Campaign row.

    ``content_items`` holds the ordered list of content requirements as JSON
    objects ``{id, socialChannel, contentType, quantity, description}``. The
    list is immutable once the campaign is active; positions are stable.
    """

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brand_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=CampaignStatus.DRAFT.value, index=True
    )
    content_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    budget_type: Mapped[Optional[str]] = mapped_column(String(32))
    # Advisory only; incremented without locking.
    applicant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
