"""Content submissions and their media assets."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, new_id
from app.utils.clock import utcnow


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssetType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class CampaignSubmission(Base):
    """Represents one creator deliverable (``campaign_submissions``)."""

    __tablename__ = "campaign_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    # Requirement id, or the 1-based requirement position for legacy rows.
    task_id: Mapped[str] = mapped_column(String(64), nullable=False)
    task_description: Mapped[Optional[str]] = mapped_column(Text)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    social_channel: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SubmissionStatus.PENDING.value, index=True
    )
    rejection_comment: Mapped[Optional[str]] = mapped_column(Text)
    approved_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    submitted_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    assets: Mapped[List["SubmissionAsset"]] = relationship(
        back_populates="submission",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SubmissionAsset.position",
    )


class SubmissionAsset(Base):
    """Represents a media file attached to a submission (``submission_assets``)."""

    __tablename__ = "submission_assets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    submission_id: Mapped[str] = mapped_column(
        ForeignKey("campaign_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048))
    title: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    dimensions: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    duration: Mapped[Optional[float]] = mapped_column(Float)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger)
    tags: Mapped[Optional[list[str]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    submission: Mapped["CampaignSubmission"] = relationship(back_populates="assets")
