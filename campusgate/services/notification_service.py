"""
Best-effort outbound notifications.

Announcements are dispatched after the triggering state change has been
committed, as detached tasks. A failing webhook is logged and counted and
never reaches the caller.
"""

import asyncio
from typing import Optional

import httpx

from campusgate.core.config import get_settings
from campusgate.core.logging import get_logger
from campusgate.core.metrics import record_notification
from campusgate.services.interfaces.notifier import EventAnnouncement, Notifier

logger = get_logger(__name__)


class DiscordNotifier(Notifier):
    def __init__(self, webhook_url: str, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send(self, announcement: EventAnnouncement) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json={"content": announcement.content()})
        if response.is_error:
            raise RuntimeError(f"discord webhook failed with status {response.status_code}")


class LogNotifier(Notifier):
    """Used when no webhook is configured."""

    async def send(self, announcement: EventAnnouncement) -> None:
        logger.info("announcement_skipped", event_name=announcement.event_name, reason="no_webhook")
        record_notification("skipped")


class NotificationDispatcher:
    """Fire-and-forget delivery on detached tasks."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, announcement: EventAnnouncement) -> None:
        task = asyncio.create_task(self._deliver(announcement))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, announcement: EventAnnouncement) -> None:
        try:
            await self.notifier.send(announcement)
        except Exception as e:
            logger.warning("notification_failed", event_name=announcement.event_name, error=str(e))
            record_notification("failed")
            return
        if not isinstance(self.notifier, LogNotifier):
            logger.info("notification_sent", event_name=announcement.event_name)
            record_notification("sent")

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))


_dispatcher: Optional[NotificationDispatcher] = None


def build_notifier() -> Notifier:
    settings = get_settings()
    if settings.DISCORD_WEBHOOK_URL:
        return DiscordNotifier(settings.DISCORD_WEBHOOK_URL, timeout=settings.NOTIFIER_TIMEOUT)
    return LogNotifier()


def get_notifier() -> NotificationDispatcher:
    """Dispatcher singleton (FastAPI dependency)."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(build_notifier())
    return _dispatcher
