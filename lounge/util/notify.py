import logging
from typing import Protocol

import httpx

from lounge.config import Settings, settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, event: dict) -> None: ...


class LogNotifier:
    def send(self, event: dict) -> None:
        logger.info("notification %s: %s", event.get("type"), event.get("message"))


class WebhookNotifier:
    """Pushes events to an external notification service. Never reads back."""

    def __init__(self, url: str, timeout: float = 3.0):
        self.url = url
        self.timeout = timeout

    def send(self, event: dict) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.post(self.url, json=event)
                r.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("notification %s not delivered to %s: %s", event.get("type"), self.url, exc)


def build_notifier(s: Settings = settings) -> Notifier:
    if s.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(s.NOTIFY_WEBHOOK_URL)
    return LogNotifier()


def event(type_: str, title: str, message: str, entity_type: str | None = None, entity_id: str | None = None) -> dict:
    return {
        "type": type_,
        "title": title,
        "message": message,
        "entity_type": entity_type,
        "entity_id": entity_id,
    }
