"""In-app notification service."""

from datetime import datetime, timezone
from uuid import uuid4

import structlog

from app.domain.entities import Notification
from app.domain.exceptions import AuthorizationError, NotFoundError
from app.infrastructure.realtime import RealtimeEvent, RealtimeGateway
from app.infrastructure.repositories import NotificationRepository

logger = structlog.get_logger()


class NotificationService:
    """Writes in-app notifications and pushes them to connected clients."""

    def __init__(
        self,
        notifications: NotificationRepository,
        realtime: RealtimeGateway | None = None,
    ) -> None:
        self.notifications = notifications
        self.realtime = realtime

    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        order_id: str | None = None,
    ) -> Notification:
        """Persist a notification and push ``notification:new`` to the user."""
        notification = Notification(
            id=str(uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            order_id=order_id,
            created_at=datetime.now(timezone.utc),
        )
        await self.notifications.add(notification)
        logger.info(
            "Notification created",
            notification_id=notification.id,
            user_id=user_id,
            notification_type=type,
        )

        if self.realtime:
            await self.realtime.emit_to_user(
                user_id, RealtimeEvent.NOTIFICATION_NEW, notification.to_dict()
            )
        return notification

    async def list(self, user_id: str, limit: int = 50) -> list[Notification]:
        return await self.notifications.list_for_user(user_id, limit)

    async def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of the user's notifications as read.

        Raises:
            NotFoundError: If the notification does not exist.
            AuthorizationError: If it belongs to another user.
        """
        notification = await self.notifications.get(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.user_id != user_id:
            raise AuthorizationError(user_id, "mark read", f"notification {notification_id}")
        return await self.notifications.mark_read(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self.notifications.mark_all_read(user_id)

    async def unread_count(self, user_id: str) -> int:
        return await self.notifications.unread_count(user_id)
