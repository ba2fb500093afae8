"""In-app notification sink.

Writes to the ``notifications`` table and, when the user has email
notifications enabled, enqueues a row in ``email_queue`` for the mailer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

import asyncpg

from scorewatch.core.exceptions import DeliveryError
from scorewatch.core.logging import get_logger

if TYPE_CHECKING:
    from scorewatch.monitoring.models import Subscriber
    from scorewatch.notifications.templates import RenderedNotification
    from scorewatch.storage.database import Database

logger = get_logger(__name__)


class InAppNotificationSink:
    """NotificationSink backed by Postgres."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def deliver(self, subscriber: Subscriber, notification: RenderedNotification) -> None:
        """Store the notification and queue its email.

        A stored notification counts as delivered even if queueing its
        email fails.

        Raises:
            DeliveryError: If the notification row cannot be written
        """
        try:
            notification_id = await self._db.insert_notification(
                user_id=subscriber.user_id,
                title=notification.title,
                message=notification.message,
                link=notification.link,
                kind=notification.kind.value,
                metadata=notification.metadata,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DeliveryError(
                f"Notification for user {subscriber.user_id} not stored: {e}"
            ) from e

        await self._queue_email(subscriber, notification, notification_id)

    async def _queue_email(
        self,
        subscriber: Subscriber,
        notification: RenderedNotification,
        notification_id: UUID,
    ) -> None:
        try:
            if not await self._db.get_email_notifications_enabled(subscriber.user_id):
                return
            await self._db.enqueue_email(
                user_id=subscriber.user_id,
                email=subscriber.email,
                notification_id=notification_id,
                subject=notification.title,
                body=notification.message,
                link=notification.link,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(
                "Notification stored but email not queued",
                user_id=subscriber.user_id,
                notification_id=str(notification_id),
                error=str(e),
            )
            return

        logger.debug(
            "Notification email queued",
            user_id=subscriber.user_id,
            notification_id=str(notification_id),
        )
