"""Outbound templated email through an HTTP email gateway."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol

import requests
from loguru import logger

from app.core.concurrency import run_in_thread_email
from app.core.config import settings


class EmailTemplate(str, Enum):
    """Template keys understood by the email gateway."""

    BRAND_WELCOME_SIGNUP = "brand_welcome_signup"
    BRAND_NUDGE_CAMPAIGN_CREATION = "brand_nudge_campaign_creation"
    BRAND_CAMPAIGN_LIVE = "brand_campaign_live"
    BRAND_CREATOR_APPLIED = "brand_creator_applied"
    BRAND_MESSAGE_RECEIVED = "brand_message_received"
    BRAND_CONTENT_SUBMITTED = "brand_content_submitted"
    BRAND_CAMPAIGN_COMPLETED = "brand_campaign_completed"
    BRAND_REVIEW_RECEIVED = "brand_review_received"
    BRAND_CAMPAIGN_BOOST_REMINDER = "brand_campaign_boost_reminder"
    CREATOR_WELCOME_SIGNUP = "creator_welcome_signup"
    CREATOR_NUDGE_FIRST_APPLICATION = "creator_nudge_first_application"
    CREATOR_APPLICATION_CONFIRMATION = "creator_application_confirmation"
    CREATOR_ACCEPTED_TO_CAMPAIGN = "creator_accepted_to_campaign"
    CREATOR_MESSAGE_RECEIVED = "creator_message_received"
    CREATOR_SUBMISSION_REMINDER = "creator_submission_reminder"
    CREATOR_CONTENT_APPROVED = "creator_content_approved"
    CREATOR_CAMPAIGN_COMPLETED = "creator_campaign_completed"
    CREATOR_REVIEW_RECEIVED = "creator_review_received"
    TEAM_INVITATION = "team_invitation"


class EmailDeliveryError(Exception):
    """The gateway did not accept the message."""


class EmailGateway(Protocol):
    async def send(
        self, to: str, template: EmailTemplate, subject: str, data: dict[str, Any]
    ) -> Optional[str]:
        """Deliver one templated email; return the gateway message id when known."""
        ...


class HttpEmailGateway:
    """Posts ``{to, from, template, subject, data}`` to ``EMAIL_GATEWAY_URL``."""

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.url = url or settings.EMAIL_GATEWAY_URL
        self.token = token or settings.EMAIL_GATEWAY_TOKEN
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SEC

    def _post(self, payload: dict[str, Any]) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise EmailDeliveryError(str(exc)) from exc
        return response.headers.get("x-message-id")

    async def send(
        self, to: str, template: EmailTemplate, subject: str, data: dict[str, Any]
    ) -> Optional[str]:
        if not self.url:
            raise EmailDeliveryError("EMAIL_GATEWAY_URL is not configured")
        payload = {
            "to": to,
            "from": settings.EMAIL_FROM,
            "template": template.value,
            "subject": subject,
            "data": {**data, "subject": subject, "app_url": settings.APP_URL},
        }
        message_id = await run_in_thread_email(self._post, payload)
        logger.bind(template=template.value, message_id=message_id).info("email_sent")
        return message_id
