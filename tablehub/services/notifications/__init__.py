"""
Notification Service Factory

Returns Mock or Real notification service based on ENV_MODE, and the
dispatcher selected by NOTIFICATION_BACKEND.
"""

import logging
from functools import lru_cache

from tablehub.core.config import get_settings
from tablehub.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)
from tablehub.services.notifications.dispatcher import (
    CeleryDispatcher,
    InlineDispatcher,
    NotificationDispatcher,
)
from tablehub.services.notifications.mock import MockNotificationService
from tablehub.services.notifications.real import RealNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Get the configured notification service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Service: Using MockNotificationService (development mode)")
        return MockNotificationService()
    else:
        logger.info(f"Notification Service: Using RealNotificationService ({settings.env_mode.value} mode)")
        return RealNotificationService(settings)


@lru_cache()
def get_dispatcher() -> NotificationDispatcher:
    """Get the configured notification dispatcher."""
    settings = get_settings()

    if settings.notification_backend == "celery":
        logger.info("Notification Dispatcher: Using CeleryDispatcher")
        return CeleryDispatcher()
    logger.info("Notification Dispatcher: Using InlineDispatcher")
    return InlineDispatcher(get_notification_service())


__all__ = [
    "get_notification_service",
    "get_dispatcher",
    "BaseNotificationService",
    "NotificationResult",
    "NotificationDispatcher",
    "InlineDispatcher",
    "CeleryDispatcher",
    "MockNotificationService",
]
