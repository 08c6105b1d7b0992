"""
Notification Service Abstract Base Class

Defines the interface for sending transactional email.
Supports both Mock (development) and Real (SendGrid) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from tablehub.services.notifications.templates import render_email


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def send_notification(self, kind: str, payload: dict[str, Any]) -> NotificationResult:
        """
        Render the template for `kind` and email it to payload["to"].

        Rendering problems are reported as a failed result, not raised.
        """
        to_email = payload.get("to")
        if not to_email:
            return NotificationResult(
                success=False,
                error_message=f"No recipient for {kind} notification",
                provider=self.provider_name,
            )
        try:
            subject, body_html = render_email(kind, payload)
        except Exception as e:
            return NotificationResult(
                success=False,
                error_message=f"Could not render {kind}: {e}",
                provider=self.provider_name,
            )
        return await self.send_email(to_email, subject, body_html)
