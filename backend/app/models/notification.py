"""In-app notifications and per-user email preferences."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, new_id
from app.utils.clock import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )


class UserNotificationSettings(Base):
    """Email preference flags; a missing row means defaults apply."""

    __tablename__ = "user_notification_settings"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    email_campaign_updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_creator_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_payment_alerts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_weekly_reports: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_marketing_emails: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
