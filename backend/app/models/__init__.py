"""ORM model exports for convenient imports elsewhere in the app."""

from app.models.base import Base
from app.models.application import ApplicationStatus, CampaignApplication
from app.models.audit import AuditLog
from app.models.campaign import Campaign, CampaignStatus
from app.models.message import Message, MessageRecipient
from app.models.notification import Notification, UserNotificationSettings
from app.models.submission import (
    AssetType,
    CampaignSubmission,
    SubmissionAsset,
    SubmissionStatus,
)
from app.models.user import User, UserRole

__all__ = [
    "Base",
    "ApplicationStatus",
    "AssetType",
    "AuditLog",
    "Campaign",
    "CampaignApplication",
    "CampaignStatus",
    "CampaignSubmission",
    "Message",
    "MessageRecipient",
    "Notification",
    "SubmissionAsset",
    "SubmissionStatus",
    "User",
    "UserNotificationSettings",
    "UserRole",
]
