# src/api/dependencies/notifications.py
from fastapi import BackgroundTasks

from src.services.notifications import NotificationDispatcher, build_notification_port


def get_notifier(background_tasks: BackgroundTasks) -> NotificationDispatcher:
    """Notifications go out after the response has been sent."""
    return NotificationDispatcher(
        build_notification_port(),
        schedule=background_tasks.add_task,
    )
