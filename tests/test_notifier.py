"""
Tests for best-effort notification dispatch.
"""

from datetime import datetime, timezone

import httpx
import pytest

from campusgate.services.interfaces.notifier import EventAnnouncement
from campusgate.services.notification_service import (
    DiscordNotifier,
    LogNotifier,
    NotificationDispatcher,
    build_notifier,
)
from tests.conftest import RecordingNotifier

ANNOUNCEMENT = EventAnnouncement(
    organizer_name="Coding Club",
    event_name="Hackathon",
    event_type="NORMAL",
    reg_deadline=datetime(2026, 3, 1, tzinfo=timezone.utc),
    start_date=datetime(2026, 3, 2, tzinfo=timezone.utc),
    end_date=datetime(2026, 3, 3, tzinfo=timezone.utc),
)


def test_announcement_content():
    content = ANNOUNCEMENT.content()

    assert "Coding Club" in content
    assert "event: Hackathon" in content
    assert "2026-03-01T00:00:00+00:00" in content


@pytest.mark.asyncio
async def test_dispatch_delivers_in_background():
    notifier = RecordingNotifier()
    dispatcher = NotificationDispatcher(notifier)

    dispatcher.dispatch(ANNOUNCEMENT)
    await dispatcher.drain()

    assert notifier.sent == [ANNOUNCEMENT]


@pytest.mark.asyncio
async def test_failed_delivery_is_swallowed():
    dispatcher = NotificationDispatcher(RecordingNotifier(fail=True))

    dispatcher.dispatch(ANNOUNCEMENT)
    await dispatcher.drain()


@pytest.mark.asyncio
async def test_discord_notifier_raises_on_http_error(monkeypatch):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(500)

    original = httpx.AsyncClient

    def client_factory(**kwargs):
        return original(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)

    with pytest.raises(RuntimeError):
        await DiscordNotifier("https://discord.test/webhook").send(ANNOUNCEMENT)
    assert len(requests) == 1
    assert b"Hackathon" in requests[0].content


def test_build_notifier_without_webhook_logs_only():
    assert isinstance(build_notifier(), LogNotifier)
