import logging
from dataclasses import replace
from typing import Any, Dict, MutableMapping, Optional

from app.notifications.application.ports import PreferenceRepository
from app.notifications.domain.models import NotificationPreferences
from app.procurement.domain.errors import ValidationError
from app.procurement.domain.events import EventType


logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = NotificationPreferences()

PreferenceCache = MutableMapping[str, NotificationPreferences]


class NotificationPreferenceStore:
    """Per-user notification toggles.

    Reads go through a process-wide cache that is filled on first load and
    refreshed on every save, so a user's settings are fetched once per process.
    """

    def __init__(
        self,
        repository: PreferenceRepository,
        cache: Optional[PreferenceCache] = None,
    ) -> None:
        self._repository = repository
        self._cache: PreferenceCache = {} if cache is None else cache

    async def load(self, user_id: str) -> NotificationPreferences:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        stored = await self._repository.get(user_id)
        preferences = stored if stored is not None else DEFAULT_PREFERENCES
        self._cache[user_id] = preferences
        return preferences

    async def save(self, user_id: str, preferences: NotificationPreferences) -> NotificationPreferences:
        await self._repository.put(user_id, preferences)
        await self._repository.commit()
        self._cache[user_id] = preferences
        logger.info("Saved notification preferences for user %s", user_id)
        return preferences

    async def update(self, user_id: str, **changes: Any) -> NotificationPreferences:
        allowed = {"email", "in_app", "sound", "muted_events"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(
                f"Unknown notification preferences: {', '.join(sorted(unknown))}"
            )
        values: Dict[str, Any] = dict(changes)
        if "muted_events" in values:
            try:
                values["muted_events"] = frozenset(
                    EventType(event) for event in values["muted_events"]
                )
            except ValueError as exc:
                raise ValidationError(str(exc))
        current = await self.load(user_id)
        return await self.save(user_id, replace(current, **values))

    async def mute(self, user_id: str, event: EventType) -> NotificationPreferences:
        current = await self.load(user_id)
        if event in current.muted_events:
            return current
        return await self.save(
            user_id, replace(current, muted_events=current.muted_events | {event})
        )

    async def unmute(self, user_id: str, event: EventType) -> NotificationPreferences:
        current = await self.load(user_id)
        if event not in current.muted_events:
            return current
        return await self.save(
            user_id, replace(current, muted_events=current.muted_events - {event})
        )
