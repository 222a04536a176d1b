import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, Mapping, Optional, Sequence, Tuple

from app.procurement.domain.events import EventType
from app.procurement.domain.models import Role


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(str, enum.Enum):
    APPROVAL = "approval"
    REMINDER = "reminder"
    ALERT = "alert"
    SUCCESS = "success"
    INFO = "info"


PRIORITY_TYPES = {
    Priority.HIGH: NotificationType.ALERT,
    Priority.MEDIUM: NotificationType.APPROVAL,
    Priority.LOW: NotificationType.INFO,
}


def notification_type_for(priority: Priority) -> NotificationType:
    return PRIORITY_TYPES.get(priority, NotificationType.INFO)


@dataclass(frozen=True)
class NotificationRule:
    """Who hears about an event, and what they are told.

    Templates are ``str.format`` strings rendered against the event payload.
    """

    event: EventType
    roles: Tuple[Role, ...]
    title: str
    message: str
    priority: Priority
    link: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.event.value}:{'+'.join(role.value for role in self.roles)}"

    def render(self, payload: Mapping[str, Any]) -> Tuple[str, str, Optional[str]]:
        title = self.title.format_map(payload)
        message = self.message.format_map(payload)
        link = self.link.format_map(payload) if self.link else None
        return title, message, link


@dataclass(frozen=True)
class AppNotification:
    id: str
    recipient_id: str
    recipient_role: Role
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    priority: Priority
    event: EventType
    event_id: str
    rule_key: str
    read: bool = False
    action_url: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationPreferences:
    email: bool = True
    in_app: bool = True
    sound: bool = False
    muted_events: FrozenSet[EventType] = frozenset()

    def is_muted(self, event: EventType) -> bool:
        return event in self.muted_events


def rules_for(
    rules: Sequence[NotificationRule], event: EventType
) -> Sequence[NotificationRule]:
    return [rule for rule in rules if rule.event == event]
