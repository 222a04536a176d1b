import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic.alias_generators import to_snake

from app.notifications.application.ports import NotificationFeedRepository, UserDirectory
from app.notifications.application.preferences import NotificationPreferenceStore
from app.notifications.domain.models import (
    AppNotification,
    NotificationRule,
    notification_type_for,
    rules_for,
)
from app.notifications.domain.rules import NOTIFICATION_RULES
from app.procurement.domain.events import DomainEvent, EventType
from app.procurement.domain.models import Actor, Role


logger = logging.getLogger(__name__)

IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]


def canonical_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalise payload keys to snake_case (``mrfId`` -> ``mrf_id``)."""
    return {to_snake(str(key)): value for key, value in payload.items()}


class NotificationDispatcher:
    """Fans a domain event out to every user whose role a rule targets.

    Dispatch never raises: a failure for one recipient is logged and the rest
    of the fan-out continues, so a notification fault cannot undo the workflow
    transition that produced the event. Each recipient's delivery runs inside
    a feed savepoint, so a failed write only discards that recipient's row.
    """

    def __init__(
        self,
        feed: NotificationFeedRepository,
        preferences: NotificationPreferenceStore,
        users: UserDirectory,
        id_generator: IdGenerator,
        clock: Clock,
        rules: Sequence[NotificationRule] = NOTIFICATION_RULES,
    ) -> None:
        self._feed = feed
        self._preferences = preferences
        self._users = users
        self._id_generator = id_generator
        self._clock = clock
        self._rules = rules

    def should_notify_role(self, role: Role, event: EventType) -> bool:
        return any(role in rule.roles for rule in rules_for(self._rules, event))

    async def notify(
        self,
        event_type: EventType,
        payload: Mapping[str, Any],
        event_id: Optional[str] = None,
    ) -> List[AppNotification]:
        event = DomainEvent(
            id=event_id or self._id_generator(),
            type=EventType(event_type),
            occurred_at=self._clock(),
            payload=dict(payload),
        )
        return await self.dispatch(event)

    async def dispatch_all(self, events: Iterable[DomainEvent]) -> List[AppNotification]:
        delivered: List[AppNotification] = []
        for event in events:
            delivered.extend(await self.dispatch(event))
        return delivered

    async def dispatch(self, event: DomainEvent) -> List[AppNotification]:
        payload = canonical_payload(event.payload)
        delivered: List[AppNotification] = []

        for rule in rules_for(self._rules, event.type):
            for role in rule.roles:
                try:
                    async with self._feed.savepoint():
                        recipients = await self._users.list_users_by_role(role)
                except Exception:
                    logger.exception(
                        "Could not resolve %s recipients for %s", role.value, event.type.value
                    )
                    continue

                for recipient in recipients:
                    try:
                        async with self._feed.savepoint():
                            notification = await self._deliver(rule, recipient, event, payload)
                    except Exception:
                        logger.exception(
                            "Failed to notify user %s of %s (event %s)",
                            recipient.id,
                            event.type.value,
                            event.id,
                        )
                        continue
                    if notification is not None:
                        delivered.append(notification)

        if not delivered:
            return delivered
        try:
            await self._feed.commit()
        except Exception:
            logger.exception("Failed to store notifications for event %s", event.id)
            return []

        logger.info(
            "Dispatched %s notification(s) for %s (event %s)",
            len(delivered),
            event.type.value,
            event.id,
        )
        return delivered

    async def _deliver(
        self,
        rule: NotificationRule,
        recipient: Actor,
        event: DomainEvent,
        payload: Mapping[str, Any],
    ) -> Optional[AppNotification]:
        preferences = await self._preferences.load(recipient.id)
        if not preferences.in_app or preferences.is_muted(event.type):
            return None
        if await self._feed.exists(recipient.id, event.id, rule.key):
            return None

        title, message, action_url = rule.render(payload)
        notification = AppNotification(
            id=self._id_generator(),
            recipient_id=recipient.id,
            recipient_role=recipient.role,
            type=notification_type_for(rule.priority),
            title=title,
            message=message,
            timestamp=self._clock(),
            priority=rule.priority,
            event=event.type,
            event_id=event.id,
            rule_key=rule.key,
            read=False,
            action_url=action_url,
            payload=payload,
        )
        await self._feed.add(notification)
        return notification
