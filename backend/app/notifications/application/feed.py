from typing import Sequence

from app.notifications.application.ports import NotificationFeedRepository
from app.notifications.domain.models import AppNotification
from app.procurement.domain.errors import NotFound


class NotificationFeed:
    def __init__(self, repository: NotificationFeedRepository) -> None:
        self._repository = repository

    async def list(self, user_id: str) -> Sequence[AppNotification]:
        return await self._repository.list_for_user(user_id)

    async def unread_count(self, user_id: str) -> int:
        notifications = await self._repository.list_for_user(user_id)
        return sum(1 for notification in notifications if not notification.read)

    async def mark_as_read(self, user_id: str, notification_id: str) -> None:
        if await self._repository.mark_read(user_id, notification_id) == 0:
            raise NotFound(f"Notification {notification_id} not found")
        await self._repository.commit()

    async def mark_all_as_read(self, user_id: str) -> int:
        updated = await self._repository.mark_read(user_id)
        await self._repository.commit()
        return updated

    async def clear(self, user_id: str, notification_id: str) -> None:
        if await self._repository.delete(user_id, notification_id) == 0:
            raise NotFound(f"Notification {notification_id} not found")
        await self._repository.commit()

    async def clear_all(self, user_id: str) -> int:
        removed = await self._repository.delete(user_id)
        await self._repository.commit()
        return removed
