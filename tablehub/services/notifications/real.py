"""
SendGrid Notification Service

Transactional email for staging and production. The SendGrid client is
synchronous, so each send runs in a worker thread to keep the event loop
free while an order is being placed.
"""

import asyncio
import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail

from tablehub.core.config import Settings, get_settings
from tablehub.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)

logger = logging.getLogger(__name__)

ACCEPTED_STATUS_CODES = (200, 201, 202)


class RealNotificationService(BaseNotificationService):
    """Sends every notification through SendGrid."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client: Optional[SendGridAPIClient] = None
        if settings.sendgrid_api_key:
            self.client = SendGridAPIClient(settings.sendgrid_api_key)
        else:
            logger.warning("SENDGRID_API_KEY is not set; every email will fail")
        self.sender = From(settings.sendgrid_from_email, settings.app_name)

        logger.info(f"SendGrid notifications enabled (from {settings.sendgrid_from_email})")

    @property
    def provider_name(self) -> str:
        return "sendgrid"

    def _failure(self, reason: str) -> NotificationResult:
        return NotificationResult(success=False, error_message=reason, provider=self.provider_name)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        if self.client is None:
            return self._failure("SendGrid not configured")

        message = Mail(
            from_email=self.sender,
            to_emails=to_email,
            subject=subject,
            html_content=body_html,
            plain_text_content=body_text,
        )
        try:
            response = await asyncio.to_thread(self.client.send, message)
        except Exception as e:
            logger.error(f"SendGrid rejected email to {to_email}: {e}")
            return self._failure(str(e))

        if response.status_code not in ACCEPTED_STATUS_CODES:
            logger.error(f"SendGrid returned {response.status_code} for {to_email}")
            return self._failure(f"SendGrid status {response.status_code}")

        logger.info(f"Email '{subject}' sent to {to_email}")
        return NotificationResult(
            success=True,
            message_id=response.headers.get("X-Message-Id"),
            provider=self.provider_name,
        )

    async def health_check(self) -> bool:
        """Configured means usable; SendGrid has no cheap ping endpoint."""
        return self.client is not None
