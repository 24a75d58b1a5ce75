# src/services/notifications.py
from typing import Callable, Iterable, List, Optional, Protocol

import httpx

from src.logging_config import app_logger
from src.schema.notification import NotificationEvent
from src.settings import settings


class NotificationPort(Protocol):
    def send(self, event: NotificationEvent) -> None:
        ...


class LoggingNotificationPort:
    """Fallback port when no delivery endpoint is configured."""

    def send(self, event: NotificationEvent) -> None:
        app_logger.info(
            f"Notification [{event.type.value}] to {event.recipient}: {event.title}"
        )


class WebhookNotificationPort:
    """
    Posts each event as JSON to the platform's notification endpoint,
    which owns persistence and real-time delivery.
    """

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self.client = client

    def send(self, event: NotificationEvent) -> None:
        payload = event.model_dump(mode="json")
        if self.client is not None:
            response = self.client.post(self.url, json=payload, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload)
        if not response.is_success:
            app_logger.error(
                f"Notification endpoint error {response.status_code}: {response.text}"
            )
        response.raise_for_status()


def build_notification_port() -> NotificationPort:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationPort(
            settings.NOTIFICATION_WEBHOOK_URL,
            timeout=settings.NOTIFICATION_TIMEOUT,
        )
    return LoggingNotificationPort()


class NotificationDispatcher:
    """
    Best-effort delivery. Call ``emit`` only after the state change has
    been committed; a failing port is logged and never reaches the caller.
    When a scheduler (e.g. ``BackgroundTasks.add_task``) is given, sends
    run after the HTTP response instead of inline.
    """

    def __init__(self, port: NotificationPort, schedule: Optional[Callable] = None):
        self.port = port
        self.schedule = schedule

    def deliver(self, event: NotificationEvent) -> bool:
        try:
            self.port.send(event)
            return True
        except Exception as e:
            app_logger.error(
                f"Failed to deliver {event.type.value} notification to "
                f"{event.recipient}: {str(e)}"
            )
            return False

    def deliver_all(self, events: List[NotificationEvent]) -> int:
        return sum(1 for event in events if self.deliver(event))

    def emit(self, events: Iterable[NotificationEvent]) -> None:
        events = list(events)
        if not events:
            return
        if self.schedule is not None:
            self.schedule(self.deliver_all, events)
        else:
            self.deliver_all(events)
