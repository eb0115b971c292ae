import json

import httpx
import pytest

from slotbook.booking.notifications import EVENT_BOOKED, LoggingNotifier, WebhookNotifier, build_notifier
from slotbook.core import config


def test_webhook_notifier_posts_event_as_json() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier('https://hooks.example.com/appointments', client=client)

    notifier.notify(EVENT_BOOKED, {'id': 7, 'date_local': '2030-01-07'})

    assert len(received) == 1
    assert received[0].method == 'POST'
    assert json.loads(received[0].read()) == {'type': 'appointment.booked', 'id': 7, 'date_local': '2030-01-07'}


def test_webhook_notifier_raises_on_error_status() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(502)))
    notifier = WebhookNotifier('https://hooks.example.com/appointments', client=client)

    with pytest.raises(httpx.HTTPStatusError):
        notifier.notify(EVENT_BOOKED, {'id': 7})


def test_build_notifier_picks_webhook_when_configured(monkeypatch) -> None:
    monkeypatch.setattr(config, 'NOTIFY_WEBHOOK_URL', 'https://hooks.example.com/appointments')

    assert isinstance(build_notifier(), WebhookNotifier)


def test_build_notifier_defaults_to_logging(monkeypatch) -> None:
    monkeypatch.setattr(config, 'NOTIFY_WEBHOOK_URL', '')

    assert isinstance(build_notifier(), LoggingNotifier)
