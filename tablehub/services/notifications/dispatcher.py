"""
Notification Dispatcher

Outbound queue for fire-and-forget notifications. Callers submit a
(kind, payload) pair and move on; the backend owns delivery.

Backends:
    - inline: an asyncio task in the API process
    - celery: `tablehub.tasks.send_notification` over Redis

Delivery is at-most-once: submission never raises, failures are logged,
nothing is retried.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from tablehub.services.notifications.base import BaseNotificationService

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    """Accepts notifications for later delivery."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        pass

    @abstractmethod
    def submit(self, kind: str, payload: dict[str, Any]) -> None:
        """Queue a notification. Never raises."""
        pass


class InlineDispatcher(NotificationDispatcher):
    """Delivers on the running event loop after the caller returns."""

    def __init__(self, service: BaseNotificationService):
        self.service = service
        self._tasks: set[asyncio.Task] = set()

    @property
    def backend_name(self) -> str:
        return "inline"

    def submit(self, kind: str, payload: dict[str, Any]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(kind, payload))
        except RuntimeError:
            logger.error(f"No event loop to deliver {kind} notification; dropped")
            return
        # Hold a reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, kind: str, payload: dict[str, Any]) -> None:
        try:
            result = await self.service.send_notification(kind, payload)
        except Exception as e:
            logger.error(f"Notification {kind} to {payload.get('to')} raised: {e}")
            return
        if not result.success:
            logger.warning(
                f"Notification {kind} to {payload.get('to')} failed: {result.error_message}"
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryDispatcher(NotificationDispatcher):
    """Hands notifications to the Celery worker through Redis."""

    @property
    def backend_name(self) -> str:
        return "celery"

    def submit(self, kind: str, payload: dict[str, Any]) -> None:
        from tablehub.tasks import send_notification

        try:
            send_notification.delay(kind, payload)
        except Exception as e:
            logger.error(f"Could not queue {kind} notification: {e}")
