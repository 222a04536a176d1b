from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.notifications.domain.models import (
    AppNotification,
    NotificationPreferences,
    NotificationType,
    Priority,
)
from app.procurement.domain.events import EventType
from app.procurement.domain.models import Actor, Role
from database import (
    AppNotification as AppNotificationModel,
    NotificationPreference as NotificationPreferenceModel,
    User,
)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _json_value(item) for key, item in value.items()}
    return value


class SqlAlchemyNotificationFeedRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    async def exists(self, recipient_id: str, event_id: str, rule_key: str) -> bool:
        result = await self._session.execute(
            select(AppNotificationModel.id).where(
                AppNotificationModel.recipient_id == recipient_id,
                AppNotificationModel.event_id == event_id,
                AppNotificationModel.rule_key == rule_key,
            )
        )
        return result.first() is not None

    async def add(self, notification: AppNotification) -> None:
        self._session.add(
            AppNotificationModel(
                id=notification.id,
                recipient_id=notification.recipient_id,
                recipient_role=notification.recipient_role.value,
                type=notification.type.value,
                title=notification.title,
                message=notification.message,
                priority=notification.priority.value,
                event=notification.event.value,
                event_id=notification.event_id,
                rule_key=notification.rule_key,
                action_url=notification.action_url,
                payload=_json_value(notification.payload),
                is_read=notification.read,
                created_at=notification.timestamp,
            )
        )
        # Sessions run without autoflush; exists() must see this row.
        await self._session.flush()

    async def list_for_user(self, recipient_id: str) -> Sequence[AppNotification]:
        result = await self._session.execute(
            select(AppNotificationModel)
            .where(AppNotificationModel.recipient_id == recipient_id)
            .order_by(AppNotificationModel.seq)
        )
        return [self._to_domain(row) for row in result.scalars().all()]

    async def mark_read(self, recipient_id: str, notification_id: Optional[str] = None) -> int:
        statement = update(AppNotificationModel).where(
            AppNotificationModel.recipient_id == recipient_id
        )
        if notification_id is not None:
            statement = statement.where(AppNotificationModel.id == notification_id)
        result = await self._session.execute(
            statement.values(is_read=True).execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, recipient_id: str, notification_id: Optional[str] = None) -> int:
        statement = delete(AppNotificationModel).where(
            AppNotificationModel.recipient_id == recipient_id
        )
        if notification_id is not None:
            statement = statement.where(AppNotificationModel.id == notification_id)
        result = await self._session.execute(
            statement.execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def commit(self) -> None:
        await self._session.commit()

    @staticmethod
    def _to_domain(row: AppNotificationModel) -> AppNotification:
        return AppNotification(
            id=row.id,
            recipient_id=row.recipient_id,
            recipient_role=Role(row.recipient_role),
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            timestamp=row.created_at,
            priority=Priority(row.priority),
            event=EventType(row.event),
            event_id=row.event_id,
            rule_key=row.rule_key,
            read=row.is_read,
            action_url=row.action_url,
            payload=row.payload or {},
        )


class SqlAlchemyPreferenceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> Optional[NotificationPreferences]:
        row = await self._session.get(NotificationPreferenceModel, user_id)
        if row is None:
            return None
        return NotificationPreferences(
            email=row.email,
            in_app=row.in_app,
            sound=row.sound,
            muted_events=frozenset(EventType(event) for event in row.muted_events or ()),
        )

    async def put(self, user_id: str, preferences: NotificationPreferences) -> None:
        values: Dict[str, Any] = {
            "email": preferences.email,
            "in_app": preferences.in_app,
            "sound": preferences.sound,
            "muted_events": sorted(event.value for event in preferences.muted_events),
        }
        row = await self._session.get(NotificationPreferenceModel, user_id)
        if row is None:
            self._session.add(NotificationPreferenceModel(user_id=user_id, **values))
            return
        for key, value in values.items():
            setattr(row, key, value)

    async def commit(self) -> None:
        await self._session.commit()


class SqlAlchemyUserDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_users_by_role(self, role: Role) -> List[Actor]:
        result = await self._session.execute(
            select(User)
            .where(User.role == role.value, User.is_active.is_(True))
            .order_by(User.created_at)
        )
        return [
            Actor(id=user.id, name=user.name, role=Role(user.role), department=user.department)
            for user in result.scalars().all()
        ]

    async def get_actor(self, user_id: str) -> Optional[Actor]:
        user = await self._session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return Actor(id=user.id, name=user.name, role=Role(user.role), department=user.department)
