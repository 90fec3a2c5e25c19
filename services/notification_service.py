"""
Notification Service - delivery sinks for user-visible alerts.

Thin senders with no business logic and no DB access. Every sink supports:
- schedule(id, title, body): queue or deliver a notification
- cancel(ids): drop pending notifications; unknown ids are ignored
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Protocol

import requests

from config import NotificationConfig, config


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def schedule(self, notification_id: str, title: str, body: str) -> None:
        ...

    def cancel(self, notification_ids: Iterable[str]) -> None:
        ...


@dataclass
class ScheduledNotification:
    """A notification held by an in-memory sink."""
    id: str
    title: str
    body: str
    scheduled_at: datetime


class InMemoryNotifier:
    """
    Keeps pending notifications in memory and logs them.

    Scheduling an id that is already pending replaces it. `history` keeps
    every notification ever scheduled, in order, including cancelled ones.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: dict[str, ScheduledNotification] = {}
        self.history: list[ScheduledNotification] = []
        self.cancelled: list[str] = []

    def schedule(self, notification_id: str, title: str, body: str) -> None:
        notification = ScheduledNotification(
            id=notification_id,
            title=title,
            body=body,
            scheduled_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._pending[notification_id] = notification
            self.history.append(notification)
        logger.info(f"🔔 {title}: {body}")

    def cancel(self, notification_ids: Iterable[str]) -> None:
        with self._lock:
            for notification_id in notification_ids:
                self.cancelled.append(notification_id)
                if self._pending.pop(notification_id, None) is not None:
                    logger.debug(f"Cancelled notification {notification_id}")

    @property
    def pending(self) -> dict[str, ScheduledNotification]:
        with self._lock:
            return dict(self._pending)

    def deliver(self, notification_id: str) -> ScheduledNotification | None:
        """Mark a pending notification as shown and drop it from pending."""
        with self._lock:
            return self._pending.pop(notification_id, None)


class TelegramNotifier:
    """
    Sends notifications through the Telegram Bot API.

    Delivery is immediate, so cancel only forgets ids; it cannot recall a
    message already sent.
    """

    def __init__(self, notification_config: NotificationConfig | None = None):
        self.config = notification_config or config.notifications
        self._sent: set[str] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.config.telegram_token and self.config.telegram_chat_id)

    def schedule(self, notification_id: str, title: str, body: str) -> None:
        if not self.enabled:
            logger.warning("Telegram credentials not set; skipping notification")
            return

        try:
            response = requests.post(
                f"https://api.telegram.org/bot{self.config.telegram_token}/sendMessage",
                json={
                    "chat_id": self.config.telegram_chat_id,
                    "text": f"*{title}*\n\n{body}",
                    "parse_mode": "Markdown",
                },
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            self._sent.add(notification_id)
        except requests.RequestException:
            logger.exception("Failed to send Telegram notification")

    def cancel(self, notification_ids: Iterable[str]) -> None:
        for notification_id in notification_ids:
            self._sent.discard(notification_id)


def build_notifier(notification_config: NotificationConfig | None = None) -> Notifier:
    """Telegram when credentials are configured, in-memory otherwise."""
    telegram = TelegramNotifier(notification_config)
    if telegram.enabled:
        return telegram
    return InMemoryNotifier()
