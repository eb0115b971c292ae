"""
Best-effort appointment notifications.

A notifier receives an event name and a plain-dict snapshot of the appointment.
Delivery is never guaranteed: the booking engine logs any exception a notifier
raises and carries on.
"""

import logging

import httpx

from slotbook.core import config

logger = logging.getLogger(__name__)

EVENT_BOOKED = "appointment.booked"
EVENT_CANCELED = "appointment.canceled"
EVENT_RESCHEDULED = "appointment.rescheduled"


class Notifier:
    def notify(self, event: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier: records the event in the application log."""

    def notify(self, event: str, payload: dict) -> None:
        logger.info(
            "Notification %s: appointment %s for %s on %s %s",
            event,
            payload.get("id"),
            payload.get("user_email") or payload.get("user_id"),
            payload.get("date_local"),
            payload.get("time_local"),
        )


class WebhookNotifier(Notifier):
    """POSTs events as JSON to an external delivery service (email/WhatsApp bridge)."""

    def __init__(self, url: str, timeout: float = config.NOTIFY_TIMEOUT_SECONDS, client: httpx.Client | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def notify(self, event: str, payload: dict) -> None:
        body = {"type": event, **payload}
        if self._client is not None:
            response = self._client.post(self.url, json=body, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()
        logger.info("Notification %s delivered to webhook (status %s)", event, response.status_code)


def build_notifier() -> Notifier:
    if config.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(config.NOTIFY_WEBHOOK_URL)
    return LoggingNotifier()
