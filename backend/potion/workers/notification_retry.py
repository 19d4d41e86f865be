"""
Notification retry worker.
Retries failed emails according to retry policy.
Runs every 5 minutes.
"""

import asyncio
import logging

from potion.database import AsyncSessionLocal
from potion.logging_config import configure_logging
from potion.models.notification import NotificationStatus
from potion.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


async def retry_failed_notifications() -> dict:
    """
    Main notification retry job.
    Finds failed emails and retries them.
    """
    async with AsyncSessionLocal() as db:
        notification_service = NotificationService(db)

        failed = await notification_service.get_failed_notifications_for_retry()

        total_retries = 0
        total_successes = 0

        for notification in failed:
            result = await notification_service.retry_notification(notification.id)
            total_retries += 1

            if result and result.status == NotificationStatus.SENT:
                total_successes += 1
                logger.info("Retry successful: %s", notification.id)
            else:
                logger.warning("Retry failed: %s", notification.id)

        return {
            "retries_attempted": total_retries,
            "successes": total_successes,
        }


# Entry point for running as standalone script
if __name__ == "__main__":
    configure_logging()
    result = asyncio.run(retry_failed_notifications())
    logger.info("Retry results: %s", result)
