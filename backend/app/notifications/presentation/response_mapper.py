from typing import Any, Dict

from app.notifications.domain.models import AppNotification, NotificationPreferences


def notification_to_response(notification: AppNotification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "timestamp": notification.timestamp.isoformat() if notification.timestamp else None,
        "read": notification.read,
        "priority": notification.priority.value,
        "event": notification.event.value,
        "action_url": notification.action_url,
    }


def preferences_to_response(preferences: NotificationPreferences) -> Dict[str, Any]:
    return {
        "email": preferences.email,
        "in_app": preferences.in_app,
        "sound": preferences.sound,
        "muted_events": sorted(event.value for event in preferences.muted_events),
    }
