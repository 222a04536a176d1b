"""
Notification Routes - in-app feed and per-user preferences
"""
from datetime import datetime
from typing import Dict, List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.notifications.application.dispatcher import NotificationDispatcher
from app.notifications.application.feed import NotificationFeed
from app.notifications.application.preferences import NotificationPreferenceStore
from app.notifications.domain.models import NotificationPreferences
from app.notifications.infrastructure.sqlalchemy_repository import (
    SqlAlchemyNotificationFeedRepository,
    SqlAlchemyPreferenceRepository,
    SqlAlchemyUserDirectory,
)
from app.notifications.presentation.response_mapper import (
    notification_to_response,
    preferences_to_response,
)
from app.procurement.domain.errors import DomainError
from app.procurement.domain.events import EventType
from app.procurement.domain.models import Actor
from database import get_postgres_session
from routes.auth import get_current_actor
from routes.errors import to_http_exception

# Create router
notification_router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

# Loaded once per process, refreshed on save
PREFERENCE_CACHE: Dict[str, NotificationPreferences] = {}


# ==================== PYDANTIC MODELS ====================

class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: Optional[bool] = None
    in_app: Optional[bool] = None
    sound: Optional[bool] = None
    muted_events: Optional[List[str]] = None


# ==================== HELPER FUNCTIONS ====================

def preference_store(session: AsyncSession) -> NotificationPreferenceStore:
    return NotificationPreferenceStore(SqlAlchemyPreferenceRepository(session), PREFERENCE_CACHE)


def build_dispatcher(session: AsyncSession) -> NotificationDispatcher:
    return NotificationDispatcher(
        feed=SqlAlchemyNotificationFeedRepository(session),
        preferences=preference_store(session),
        users=SqlAlchemyUserDirectory(session),
        id_generator=lambda: str(uuid.uuid4()),
        clock=datetime.utcnow,
    )


def parse_event(event: str) -> EventType:
    try:
        return EventType(event)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown event '{event}'")


# ==================== FEED ROUTES ====================

@notification_router.get("")
async def list_notifications(
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Current user's feed, oldest first"""
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    notifications = await feed.list(current_user.id)
    return {
        "notifications": [notification_to_response(n) for n in notifications],
        "unread_count": sum(1 for n in notifications if not n.read),
    }


@notification_router.get("/unread-count")
async def get_unread_count(
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    return {"unread_count": await feed.unread_count(current_user.id)}


@notification_router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    try:
        await feed.mark_as_read(current_user.id, notification_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return {"message": "Notification marked as read"}


@notification_router.post("/read-all")
async def mark_all_notifications_read(
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    updated = await feed.mark_all_as_read(current_user.id)
    return {"updated": updated}


@notification_router.delete("/{notification_id}")
async def clear_notification(
    notification_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    try:
        await feed.clear(current_user.id, notification_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return {"message": "Notification cleared"}


@notification_router.delete("")
async def clear_all_notifications(
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    feed = NotificationFeed(SqlAlchemyNotificationFeedRepository(session))
    removed = await feed.clear_all(current_user.id)
    return {"removed": removed}


# ==================== PREFERENCE ROUTES ====================

@notification_router.get("/preferences")
async def get_preferences(
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    preferences = await preference_store(session).load(current_user.id)
    return preferences_to_response(preferences)


@notification_router.put("/preferences")
async def update_preferences(
    data: PreferencesUpdate,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        preferences = await preference_store(session).update(
            current_user.id, **data.model_dump(exclude_none=True)
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return preferences_to_response(preferences)


@notification_router.post("/preferences/mute/{event}")
async def mute_event(
    event: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    preferences = await preference_store(session).mute(current_user.id, parse_event(event))
    return preferences_to_response(preferences)


@notification_router.post("/preferences/unmute/{event}")
async def unmute_event(
    event: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    preferences = await preference_store(session).unmute(current_user.id, parse_event(event))
    return preferences_to_response(preferences)
