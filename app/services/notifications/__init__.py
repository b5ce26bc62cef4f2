"""
Email provider selection.

Development gets the in-memory mock; staging and production use SendGrid.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)
from app.services.notifications.mock import MockNotificationService
from app.services.notifications.real import RealNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Shared email provider for the current ENV_MODE."""
    settings = get_settings()

    if settings.use_real_services:
        logger.info(f"Email provider: SendGrid ({settings.env_mode.value} mode)")
        return RealNotificationService()

    logger.info("Email provider: in-memory mock (development mode)")
    return MockNotificationService(failure_rate=0.05)


def reset_notification_service() -> None:
    """Drop the cached provider, e.g. after settings change."""
    get_notification_service.cache_clear()


__all__ = [
    "get_notification_service",
    "reset_notification_service",
    "BaseNotificationService",
    "MockNotificationService",
    "NotificationResult",
    "RealNotificationService",
]
