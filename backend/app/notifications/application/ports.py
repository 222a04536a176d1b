from typing import AsyncContextManager, Optional, Protocol, Sequence

from app.notifications.domain.models import AppNotification, NotificationPreferences
from app.procurement.domain.models import Actor, Role


class UserDirectory(Protocol):
    async def list_users_by_role(self, role: Role) -> Sequence[Actor]:
        ...


class NotificationFeedRepository(Protocol):
    def savepoint(self) -> AsyncContextManager[None]:
        """Scope one delivery so its failure leaves the rest of the batch usable."""
        ...

    async def exists(self, recipient_id: str, event_id: str, rule_key: str) -> bool:
        ...

    async def add(self, notification: AppNotification) -> None:
        ...

    async def list_for_user(self, recipient_id: str) -> Sequence[AppNotification]:
        """Return the user's feed in insertion order."""
        ...

    async def mark_read(self, recipient_id: str, notification_id: Optional[str] = None) -> int:
        """Mark one notification, or all of them when no id is given."""
        ...

    async def delete(self, recipient_id: str, notification_id: Optional[str] = None) -> int:
        ...

    async def commit(self) -> None:
        ...


class PreferenceRepository(Protocol):
    async def get(self, user_id: str) -> Optional[NotificationPreferences]:
        ...

    async def put(self, user_id: str, preferences: NotificationPreferences) -> None:
        ...

    async def commit(self) -> None:
        ...
