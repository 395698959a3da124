"""
Post-commit ticket notifications.

DELIVERY STRATEGY
=================

A reservation commits first and notifies second. Notifications must never be
able to undo or fail a committed reservation, so the dispatcher:

  - accepts snapshots (TicketNotification), not ORM objects
  - schedules one detached asyncio task per ticket and returns immediately
  - bounds every attempt with NOTIFICATION_TIMEOUT_SECONDS
  - retries up to NOTIFICATION_MAX_ATTEMPTS with linear backoff
  - logs and counts the final failure, and swallows it

In-flight tasks are tracked so shutdown can drain them.
"""

import asyncio
from typing import Iterable, Optional

from boxoffice.core.config import Settings, get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_notification
from boxoffice.infrastructure.smtp_client import SmtpNotifier
from boxoffice.services.interfaces.log_notifier import LogNotifier
from boxoffice.services.interfaces.notifier import TicketNotification, TicketNotifier

logger = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, notifier: TicketNotifier, settings: Optional[Settings] = None):
        self.notifier = notifier
        self.settings = settings or get_settings()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, notifications: Iterable[TicketNotification]) -> None:
        """Schedule delivery for each notification without waiting for it."""
        for notification in notifications:
            task = asyncio.create_task(self._deliver(notification))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(self, notification: TicketNotification) -> bool:
        attempts = max(1, self.settings.NOTIFICATION_MAX_ATTEMPTS)

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    self.notifier.send(notification),
                    timeout=self.settings.NOTIFICATION_TIMEOUT_SECONDS,
                )
                record_notification("sent")
                logger.info(
                    "ticket_notification_sent",
                    ticket_number=notification.ticket_number,
                    attempt=attempt,
                )
                return True
            except Exception as e:
                if attempt == attempts:
                    record_notification("failed")
                    logger.warning(
                        "ticket_notification_failed",
                        ticket_number=notification.ticket_number,
                        attempts=attempts,
                        error=repr(e),
                    )
                    return False
                record_notification("retried")
                logger.info(
                    "ticket_notification_retry",
                    ticket_number=notification.ticket_number,
                    attempt=attempt,
                    error=repr(e),
                )
                await asyncio.sleep(self.settings.NOTIFICATION_RETRY_DELAY * attempt)
        return False

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries, cancelling whatever outlives the timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("ticket_notifications_abandoned", count=len(still_running))

    async def close(self, timeout: Optional[float] = None) -> None:
        await self.drain(timeout)
        await self.notifier.close()


def build_notifier(settings: Optional[Settings] = None) -> TicketNotifier:
    """
    Pick the notification channel from configuration.

    NOTIFICATION_BACKEND=smtp sends email; anything else logs.
    """
    settings = settings or get_settings()
    if settings.NOTIFICATION_BACKEND == "smtp":
        return SmtpNotifier(settings)
    return LogNotifier()


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """Get the process-wide dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(build_notifier())
    return _dispatcher


async def close_dispatcher(timeout: Optional[float] = None) -> None:
    global _dispatcher
    if _dispatcher is not None:
        await _dispatcher.close(timeout)
        _dispatcher = None
